"""
profiles.py
Perfil del usuario y libreta de direcciones, guardados en `users/<uid>`.
Nunca toca `cart` ni `favorites`.
"""

import uuid
from typing import Dict, List, Optional

from valmore.documents import DocumentNotFound, DocumentStore
from valmore.reconcile import USERS
from valmore.schemas import Address, ProfileUpdate


def get_user_profile(store: DocumentStore, user_id: str) -> Optional[Dict]:
    doc = store.get(USERS, user_id)
    if doc is None:
        return None
    return {
        "id": user_id,
        "email": doc.get("email"),
        "fullName": doc.get("fullName") or doc.get("name"),
        "phone": doc.get("phone", ""),
        "addresses": doc.get("addresses") or [],
    }


def update_user_profile(store: DocumentStore, user_id: str, changes: ProfileUpdate) -> None:
    data = changes.model_dump(by_alias=True, exclude_none=True)
    if not data:
        return
    store.update(USERS, user_id, data)


def _addresses(store: DocumentStore, user_id: str) -> List[Dict]:
    doc = store.get(USERS, user_id)
    if doc is None:
        raise DocumentNotFound(f"No existe {USERS}/{user_id}")
    return list(doc.get("addresses") or [])


def add_address(store: DocumentStore, user_id: str, address: Address) -> Dict:
    addresses = _addresses(store, user_id)
    saved = address.model_copy(update={"id": str(uuid.uuid4())}).model_dump(by_alias=True)
    addresses.append(saved)
    store.update(USERS, user_id, {"addresses": addresses})
    return saved


def update_address(store: DocumentStore, user_id: str, address_id: str, address: Address) -> bool:
    addresses = _addresses(store, user_id)
    for i, current in enumerate(addresses):
        if current.get("id") == address_id:
            addresses[i] = address.model_copy(update={"id": address_id}).model_dump(by_alias=True)
            store.update(USERS, user_id, {"addresses": addresses})
            return True
    return False


def delete_address(store: DocumentStore, user_id: str, address_id: str) -> bool:
    addresses = _addresses(store, user_id)
    remaining = [a for a in addresses if a.get("id") != address_id]
    if len(remaining) == len(addresses):
        return False
    store.update(USERS, user_id, {"addresses": remaining})
    return True
