"""
guest_storage.py
Almacenamiento local del invitado (equivalente al localStorage del navegador).
En HTTP envuelve la sesión firmada de Starlette; en tests, un dict.
"""

import json
import logging
from typing import Any, MutableMapping, Optional

logger = logging.getLogger(__name__)

CART_KEY = "cart"
FAVORITES_KEY = "favorites"
LANGUAGE_KEY = "valmore-language"


class GuestStorage:
    def __init__(self, backend: Optional[MutableMapping[str, Any]] = None):
        self._backend = backend if backend is not None else {}

    def get_item(self, key: str) -> Optional[str]:
        value = self._backend.get(key)
        return None if value is None else str(value)

    def set_item(self, key: str, value: str) -> None:
        self._backend[key] = value

    def remove_item(self, key: str) -> None:
        self._backend.pop(key, None)

    def has_item(self, key: str) -> bool:
        return key in self._backend

    def read_json(self, key: str, expected_type: type = list) -> Any:
        """
        Lee y parsea un valor JSON. Si no existe devuelve None.
        Si está corrupto (o no es del tipo esperado) lo borra y devuelve None.
        """
        raw = self.get_item(key)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Valor corrupto en '%s', se descarta", key)
            self.remove_item(key)
            return None
        if not isinstance(value, expected_type):
            logger.warning("Valor de tipo inesperado en '%s', se descarta", key)
            self.remove_item(key)
            return None
        return value

    def write_json(self, key: str, value: Any) -> None:
        self.set_item(key, json.dumps(value, ensure_ascii=False))
