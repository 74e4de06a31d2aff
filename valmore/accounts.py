"""
accounts.py
Registro de credenciales de clientes (colección `accounts`).
Cumple el rol del proveedor de autenticación: da el uid que después
identifica el documento `users/<uid>`.
"""

from dataclasses import dataclass
from typing import Optional

import bcrypt

from valmore.documents import DocumentStore, new_document_id

ACCOUNTS = "accounts"


class AccountError(ValueError):
    pass


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str
    full_name: str


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _find_account(store: DocumentStore, email: str) -> Optional[dict]:
    found = store.query(ACCOUNTS, where={"email": _normalize_email(email)}, limit=1)
    return found[0] if found else None


def register(store: DocumentStore, email: str, password: str, full_name: str) -> AuthUser:
    email = _normalize_email(email)
    full_name = " ".join((full_name or "").strip().split())
    if not email or not full_name:
        raise AccountError("Para registrarse se necesita nombre y email.")
    if len(password or "") < 6:
        raise AccountError("La contraseña debe tener al menos 6 caracteres.")
    if _find_account(store, email):
        raise AccountError("Email ya registrado")

    uid = new_document_id()
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt())
    store.set(
        ACCOUNTS,
        uid,
        {"email": email, "fullName": full_name, "password": hashed.decode("utf-8")},
    )
    return AuthUser(uid=uid, email=email, full_name=full_name)


def authenticate(store: DocumentStore, email: str, password: str) -> Optional[AuthUser]:
    account = _find_account(store, email)
    if not account:
        return None
    if not bcrypt.checkpw((password or "").encode("utf-8"), account["password"].encode("utf-8")):
        return None
    return AuthUser(uid=account["id"], email=account["email"], full_name=account["fullName"])


def get_user(store: DocumentStore, uid: str) -> Optional[AuthUser]:
    account = store.get(ACCOUNTS, uid)
    if not account:
        return None
    return AuthUser(uid=uid, email=account["email"], full_name=account["fullName"])
