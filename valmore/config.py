"""
config.py
Configuración de la tienda leída desde variables de entorno (.env en local).
"""

import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"

# Nunca pisamos variables ya definidas (Cloud Run / tests)
load_dotenv(ENV_PATH, override=False)

ENV_MODE = (os.getenv("ENV", "") or "").lower()

# -------------------------
# Base de datos
# -------------------------
DB_PATH = Path(os.getenv("VALMORE_DB_PATH", str(BASE_DIR / "valmore.db")))

# -------------------------
# Admin (panel + API)
# -------------------------
ADMIN_USER = os.getenv("ADMIN_USER", "")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "")

if not ADMIN_USER or not ADMIN_PASSWORD:
    raise RuntimeError("ADMIN_USER / ADMIN_PASSWORD no configurados")

BACKOFFICE_API_KEY = os.getenv("BACKOFFICE_API_KEY", "")
if not BACKOFFICE_API_KEY:
    raise RuntimeError("BACKOFFICE_API_KEY no configurada")

SESSION_SECRET_KEY = os.getenv("SESSION_SECRET_KEY", "dev-only")

# -------------------------
# Checkout
# -------------------------
CURRENCY = "TRY"
SHIPPING_COST = float(os.getenv("SHIPPING_COST", "100"))
FREE_SHIPPING_THRESHOLD = float(os.getenv("FREE_SHIPPING_THRESHOLD", "1000"))

# Paginado del listado de productos
ITEMS_PER_PAGE = int(os.getenv("ITEMS_PER_PAGE", "12"))
