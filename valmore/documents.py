"""
documents.py
Base documental sobre SQLite: cada documento es un JSON identificado por
(colección, id). Imita la API de un document store hosteado
(get / set / update / add / query) y permite suscribirse a los cambios
de un documento.
"""

import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

Snapshot = Optional[Dict[str, Any]]
SnapshotListener = Callable[[Snapshot], None]


class DocumentStoreError(RuntimeError):
    """Falla de lectura/escritura contra la base (permisos, disco, lock)."""


class DocumentNotFound(DocumentStoreError):
    pass


class ArrayUnion:
    """Valor especial para `update`: agrega los elementos que falten."""

    def __init__(self, *values: Any):
        self.values = list(values)

    def apply(self, current: Any) -> List[Any]:
        result = list(current or [])
        for v in self.values:
            if v not in result:
                result.append(v)
        return result


class ArrayRemove:
    """Valor especial para `update`: quita todas las apariciones."""

    def __init__(self, *values: Any):
        self.values = list(values)

    def apply(self, current: Any) -> List[Any]:
        return [v for v in (current or []) if v not in self.values]


SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id         TEXT NOT NULL,
    data       TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (collection, id)
);
"""


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


class DocumentStore:
    def __init__(self, db_path):
        self.db_path = Path(db_path)
        self._listeners: Dict[Tuple[str, str], List[SnapshotListener]] = {}
        self._lock = threading.Lock()

    # -------------------------
    # DB utils
    # -------------------------
    def get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=10)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        if not self.db_path.exists():
            logger.info("Creando base de datos en %s", self.db_path)
        try:
            with self.get_connection() as conn:
                conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise DocumentStoreError(f"No se pudo inicializar la base: {e}") from e

    # -------------------------
    # Lectura
    # -------------------------
    def get(self, collection: str, doc_id: str) -> Snapshot:
        try:
            with self.get_connection() as conn:
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"Error leyendo {collection}/{doc_id}: {e}") from e
        if not row:
            return None
        return json.loads(row["data"])

    def exists(self, collection: str, doc_id: str) -> bool:
        return self.get(collection, doc_id) is not None

    def query(
        self,
        collection: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Devuelve los documentos de la colección que cumplen todos los filtros
        de igualdad de `where`. Cada resultado incluye su `id`.
        """
        try:
            with self.get_connection() as conn:
                rows = conn.execute(
                    "SELECT id, data FROM documents WHERE collection = ? ORDER BY created_at, rowid",
                    (collection,),
                ).fetchall()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"Error consultando {collection}: {e}") from e

        docs = []
        for r in rows:
            doc = json.loads(r["data"])
            if where and any(doc.get(k) != v for k, v in where.items()):
                continue
            doc["id"] = r["id"]
            docs.append(doc)

        if order_by:
            # Los documentos sin el campo quedan al final
            present = [d for d in docs if d.get(order_by) is not None]
            missing = [d for d in docs if d.get(order_by) is None]
            present.sort(key=lambda d: d[order_by], reverse=descending)
            docs = present + missing
        if limit is not None:
            docs = docs[:limit]
        return docs

    def count(self, collection: str) -> int:
        try:
            with self.get_connection() as conn:
                return conn.execute(
                    "SELECT COUNT(*) FROM documents WHERE collection = ?",
                    (collection,),
                ).fetchone()[0]
        except sqlite3.Error as e:
            raise DocumentStoreError(f"Error contando {collection}: {e}") from e

    # -------------------------
    # Escritura
    # -------------------------
    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        payload = dict(data)
        payload.pop("id", None)
        try:
            with self.get_connection() as conn:
                if merge:
                    row = conn.execute(
                        "SELECT data FROM documents WHERE collection = ? AND id = ?",
                        (collection, doc_id),
                    ).fetchone()
                    if row:
                        current = json.loads(row["data"])
                        current.update(payload)
                        payload = current
                conn.execute(
                    """
                    INSERT INTO documents (collection, id, data)
                    VALUES (?, ?, ?)
                    ON CONFLICT (collection, id)
                    DO UPDATE SET data = excluded.data, updated_at = CURRENT_TIMESTAMP
                    """,
                    (collection, doc_id, json.dumps(payload, ensure_ascii=False)),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"Error escribiendo {collection}/{doc_id}: {e}") from e
        self._notify(collection, doc_id)

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = new_document_id()
        self.set(collection, doc_id, data)
        return doc_id

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        """
        Actualiza campos de un documento existente. Nunca crea el documento:
        si no existe levanta DocumentNotFound.
        """
        try:
            with self.get_connection() as conn:
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                ).fetchone()
                if not row:
                    raise DocumentNotFound(f"No existe {collection}/{doc_id}")
                current = json.loads(row["data"])
                for field, value in changes.items():
                    if isinstance(value, (ArrayUnion, ArrayRemove)):
                        current[field] = value.apply(current.get(field))
                    else:
                        current[field] = value
                conn.execute(
                    """
                    UPDATE documents
                    SET data = ?, updated_at = CURRENT_TIMESTAMP
                    WHERE collection = ? AND id = ?
                    """,
                    (json.dumps(current, ensure_ascii=False), collection, doc_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"Error actualizando {collection}/{doc_id}: {e}") from e
        self._notify(collection, doc_id)

    def delete(self, collection: str, doc_id: str) -> bool:
        try:
            with self.get_connection() as conn:
                cur = conn.execute(
                    "DELETE FROM documents WHERE collection = ? AND id = ?",
                    (collection, doc_id),
                )
                conn.commit()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"Error borrando {collection}/{doc_id}: {e}") from e
        self._notify(collection, doc_id)
        return cur.rowcount > 0

    def clear(self, collection: Optional[str] = None) -> None:
        try:
            with self.get_connection() as conn:
                if collection:
                    conn.execute("DELETE FROM documents WHERE collection = ?", (collection,))
                else:
                    conn.execute("DELETE FROM documents")
                conn.commit()
        except sqlite3.Error as e:
            raise DocumentStoreError(f"Error limpiando la base: {e}") from e

    # -------------------------
    # Suscripciones
    # -------------------------
    def on_snapshot(self, collection: str, doc_id: str, callback: SnapshotListener) -> Callable[[], None]:
        """
        Registra `callback` para el documento. Se invoca enseguida con el
        estado actual y luego después de cada escritura confirmada.
        Devuelve la función para desuscribirse.
        """
        key = (collection, doc_id)
        # La primera lectura va antes de registrar: si falla no queda nada colgado
        snapshot = self.get(collection, doc_id)
        with self._lock:
            self._listeners.setdefault(key, []).append(callback)

        callback(snapshot)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(key, [])
                if callback in listeners:
                    listeners.remove(callback)
                if not listeners:
                    self._listeners.pop(key, None)

        return unsubscribe

    def _notify(self, collection: str, doc_id: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get((collection, doc_id), []))
        if not listeners:
            return
        try:
            snapshot = self.get(collection, doc_id)
        except DocumentStoreError:
            # La escritura ya se confirmó; solo se pierde esta notificación
            logger.exception("No se pudo notificar el cambio de %s/%s", collection, doc_id)
            return
        for listener in listeners:
            # Cada listener recibe su propia copia
            listener(json.loads(json.dumps(snapshot)) if snapshot is not None else None)
