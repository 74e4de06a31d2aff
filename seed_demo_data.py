"""
Script para cargar productos de demo en la base.
Ejecutar después de cada deploy (no hace nada si ya hay productos).

Uso: python seed_demo_data.py [cantidad]
"""

import logging
import sys

from valmore.catalog import seed_products
from valmore.database import init_db, store

logger = logging.getLogger(__name__)


def seed_demo_data(count: int = 50) -> int:
    init_db()
    created = seed_products(store, count)
    if not created:
        logger.info("Ya existen productos. Saltando seed.")
    else:
        logger.info("Cargados %s productos de demo", created)
    return created


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    seed_demo_data(int(sys.argv[1]) if len(sys.argv) > 1 else 50)
