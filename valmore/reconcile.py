"""
reconcile.py
Fusión del carrito y favoritos del invitado con el documento del usuario
al momento del login.

Orden de operaciones:
1. Leer `cart` y `favorites` del almacenamiento local.
2. Carrito: por cada línea local, si existe la misma combinación
   (productId, selectedSize, selectedColor) en el remoto se suma la cantidad
   (el resto de los campos queda como en el remoto); si no, se agrega tal cual.
3. Favoritos: unión sin duplicados; solo se escribe si creció.
4. Una sola escritura con todos los campos modificados.
5. Se borran las dos claves locales siempre, haya escritura o no, y aunque
   la escritura falle. Así un segundo intento no vuelve a sumar cantidades.

No usa transacciones: una escritura concurrente sobre el mismo documento
(otra pestaña) puede pisarse.
"""

import copy
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import ValidationError

from valmore.cart_store import find_line, line_key
from valmore.documents import DocumentStore
from valmore.guest_storage import CART_KEY, FAVORITES_KEY, GuestStorage
from valmore.schemas import CartLine

logger = logging.getLogger(__name__)

USERS = "users"


@dataclass
class MergeResult:
    cart: Optional[List[Dict]] = None
    favorites: Optional[List[str]] = None
    wrote: bool = False


def ensure_user_document(
    store: DocumentStore,
    user_id: str,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> Dict:
    """Crea el documento del usuario con carrito y favoritos vacíos si no existe."""
    doc = store.get(USERS, user_id)
    if doc is not None:
        return doc
    doc = {"email": email, "name": name, "cart": [], "favorites": [], "addresses": []}
    store.set(USERS, user_id, doc, merge=True)
    return doc


def _valid_lines(lines: List) -> List[Dict]:
    valid = []
    for raw in lines:
        try:
            valid.append(CartLine.model_validate(raw).model_dump(by_alias=True))
        except ValidationError:
            logger.warning("Línea de carrito local inválida, se descarta: %r", raw)
    return valid


def merge_cart_lines(remote: List[Dict], local: List[Dict]) -> List[Dict]:
    merged = copy.deepcopy(remote)
    for local_line in local:
        idx = find_line(merged, *line_key(local_line))
        if idx is not None:
            merged[idx]["quantity"] = int(merged[idx].get("quantity", 0)) + local_line["quantity"]
        else:
            merged.append(copy.deepcopy(local_line))
    return merged


def merge_favorites(remote: List[str], local: List[str]) -> List[str]:
    # dict.fromkeys conserva el orden de aparición
    return list(dict.fromkeys([*remote, *local]))


def reconcile_guest_state(store: DocumentStore, storage: GuestStorage, user_id: str) -> MergeResult:
    """
    Fusiona el estado del invitado en el documento `users/<user_id>`.

    Si la escritura falla, las claves locales igual se borran y la
    excepción (DocumentStoreError) sube al llamador, que decide qué hacer.
    """
    local_cart = storage.read_json(CART_KEY)
    local_favorites = storage.read_json(FAVORITES_KEY)

    result = MergeResult()
    if local_cart is None and local_favorites is None:
        return result

    try:
        current = store.get(USERS, user_id) or {}
        current_cart = current.get("cart") or []
        current_favorites = current.get("favorites") or []

        updates: Dict = {}

        if local_cart:
            lines = _valid_lines(local_cart)
            if lines:
                result.cart = merge_cart_lines(current_cart, lines)
                updates["cart"] = result.cart

        if local_favorites:
            local_ids = [str(pid) for pid in local_favorites]
            merged = merge_favorites(current_favorites, local_ids)
            if len(merged) != len(current_favorites):
                result.favorites = merged
                updates["favorites"] = merged

        if updates:
            store.update(USERS, user_id, updates)
            result.wrote = True
            logger.info(
                "Estado de invitado fusionado en %s (campos: %s)",
                user_id,
                ", ".join(sorted(updates)),
            )
    finally:
        storage.remove_item(CART_KEY)
        storage.remove_item(FAVORITES_KEY)

    return result
