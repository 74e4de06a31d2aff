"""
shop_session.py
Estado de carrito y favoritos de una sesión de compra.

- Invitado: el estado vive en el GuestStorage y se persiste en cada cambio.
- Usuario logueado: el documento `users/<uid>` es la única fuente de verdad.
  Nos suscribimos a él y cada notificación reemplaza carrito y favoritos
  completos (sin diff). Las mutaciones escriben el documento y dejan que la
  suscripción actualice la vista en memoria.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from valmore import cart_store
from valmore.accounts import AuthUser
from valmore.documents import ArrayRemove, ArrayUnion, DocumentStore, DocumentStoreError
from valmore.guest_storage import CART_KEY, FAVORITES_KEY, GuestStorage
from valmore.reconcile import USERS, ensure_user_document, reconcile_guest_state
from valmore.schemas import Product

logger = logging.getLogger(__name__)


class ShopSession:
    def __init__(
        self,
        store: DocumentStore,
        storage: GuestStorage,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.storage = storage
        self.clock = clock
        self.user: Optional[AuthUser] = None
        self.cart: List[Dict] = []
        self.favorites: List[str] = []
        self.is_cart_open = False
        self.is_loading = True
        self._unsubscribe: Optional[Callable[[], None]] = None

    def __enter__(self) -> "ShopSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # -------------------------
    # Identidad
    # -------------------------
    @property
    def user_id(self) -> Optional[str]:
        return self.user.uid if self.user else None

    def on_auth_state_changed(self, user: Optional[AuthUser]) -> None:
        """
        Recibe la identidad actual (o None). La fusión con el estado del
        invitado corre solo en la transición anónimo -> usuario.
        """
        if user and self.user and user.uid == self.user.uid:
            return

        self._stop_listening()
        self.user = user
        self.cart, self.favorites = [], []
        self.is_loading = True

        if user:
            self._sign_in(user)
        else:
            self._load_guest_state()
        self.is_loading = False

    def _sign_in(self, user: AuthUser) -> None:
        try:
            ensure_user_document(self.store, user.uid, user.email, user.full_name)
        except DocumentStoreError:
            logger.exception("Error creando el documento del usuario %s", user.uid)

        try:
            self._unsubscribe = self.store.on_snapshot(USERS, user.uid, self._apply_snapshot)
        except DocumentStoreError:
            logger.exception("No se pudo suscribir al documento de %s", user.uid)

        # Política por defecto: loguear y seguir, la compra no se bloquea
        try:
            reconcile_guest_state(self.store, self.storage, user.uid)
        except DocumentStoreError:
            logger.exception("No se pudo fusionar el carrito de invitado de %s", user.uid)

    def _apply_snapshot(self, doc: Optional[Dict]) -> None:
        if doc is None:
            return
        self.cart = doc.get("cart") or []
        self.favorites = doc.get("favorites") or []

    def _load_guest_state(self) -> None:
        self.cart = self.storage.read_json(CART_KEY) or []
        self.favorites = self.storage.read_json(FAVORITES_KEY) or []

    def _persist_guest_state(self) -> None:
        if self.user or self.is_loading:
            return
        self.storage.write_json(CART_KEY, self.cart)
        self.storage.write_json(FAVORITES_KEY, self.favorites)

    def _stop_listening(self) -> None:
        if self._unsubscribe:
            self._unsubscribe()
            self._unsubscribe = None

    def close(self) -> None:
        self._stop_listening()

    # -------------------------
    # Carrito
    # -------------------------
    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _commit_cart(self, new_cart: List[Dict]) -> None:
        if self.user:
            self.store.update(USERS, self.user.uid, {"cart": new_cart})
        else:
            self.cart = new_cart
            self._persist_guest_state()

    def add_to_cart(self, product: Product, size: str, color: str) -> bool:
        try:
            line = cart_store.build_line(product, size, color, self._now_ms())
            new_cart = cart_store.add_line(self.cart, line)
            self.is_cart_open = True
            self._commit_cart(new_cart)
            return True
        except DocumentStoreError:
            logger.exception("Error agregando al carrito %s", product.id)
            return False

    def remove_from_cart(self, product_id: str, size: str, color: str) -> None:
        self._commit_cart(cart_store.remove_line(self.cart, product_id, size, color))

    def update_quantity(self, product_id: str, size: str, color: str, quantity: int) -> None:
        self._commit_cart(cart_store.set_quantity(self.cart, product_id, size, color, quantity))

    def update_cart_item(
        self,
        product_id: str,
        old_size: str,
        old_color: str,
        new_size: str,
        new_color: str,
    ) -> None:
        if cart_store.find_line(self.cart, product_id, old_size, old_color) is None:
            return
        self._commit_cart(
            cart_store.change_variant(
                self.cart, product_id, old_size, old_color, new_size, new_color, self._now_ms()
            )
        )

    def clear_cart(self) -> None:
        self._commit_cart([])

    def open_cart(self) -> None:
        self.is_cart_open = True

    def close_cart(self) -> None:
        self.is_cart_open = False

    @property
    def cart_count(self) -> int:
        return cart_store.cart_count(self.cart)

    @property
    def cart_subtotal(self) -> float:
        return cart_store.cart_subtotal(self.cart)

    # -------------------------
    # Favoritos
    # -------------------------
    def is_favorite(self, product_id: str) -> bool:
        return product_id in self.favorites

    def toggle_favorite(self, product_id: str) -> bool:
        """
        Actualización optimista: se aplica en memoria, se escribe, y si la
        escritura falla se restaura el estado previo. Devuelve si quedó
        como favorito.
        """
        previous = list(self.favorites)
        was_favorite = product_id in previous

        if was_favorite:
            self.favorites = [pid for pid in previous if pid != product_id]
        else:
            self.favorites = previous + [product_id]

        if not self.user:
            self._persist_guest_state()
            return not was_favorite

        change = ArrayRemove(product_id) if was_favorite else ArrayUnion(product_id)
        try:
            self.store.update(USERS, self.user.uid, {"favorites": change})
        except DocumentStoreError:
            logger.exception("Error actualizando favoritos de %s", self.user.uid)
            self.favorites = previous
            return was_favorite
        return not was_favorite
