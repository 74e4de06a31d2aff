"""
database.py
Instancia compartida de la base documental de la tienda.
"""

from valmore.config import DB_PATH
from valmore.documents import DocumentStore

store = DocumentStore(DB_PATH)


def init_db() -> None:
    store.init_db()


def get_store() -> DocumentStore:
    # Dependencia de FastAPI; los tests la reemplazan con dependency_overrides
    return store
