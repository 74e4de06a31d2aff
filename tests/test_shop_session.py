"""Tests for the live cart/favorites session state."""

import pytest
from helpers import cart_line

from valmore.accounts import AuthUser
from valmore.guest_storage import CART_KEY, FAVORITES_KEY
from valmore.reconcile import USERS
from valmore.shop_session import ShopSession

AYSE = AuthUser(uid="u1", email="ayse@gmail.com", full_name="Ayşe Yılmaz")


@pytest.fixture
def session(store, storage):
    s = ShopSession(store, storage, clock=lambda: 1700000000.0)
    yield s
    s.close()


class TestGuestMode:
    def test_loads_guest_state(self, session, storage):
        """Should start from what the guest left in local storage."""
        storage.write_json(CART_KEY, [cart_line("p1", "M", "Mavi")])
        storage.write_json(FAVORITES_KEY, ["p9"])

        session.on_auth_state_changed(None)

        assert session.cart_count == 1
        assert session.favorites == ["p9"]
        assert session.is_loading is False

    def test_add_to_cart_persists_locally(self, session, storage, make_product):
        """Should save every change to local storage."""
        session.on_auth_state_changed(None)
        product = make_product()

        assert session.add_to_cart(product, "M", "Mavi") is True
        session.add_to_cart(product, "M", "Mavi")

        saved = storage.read_json(CART_KEY)
        assert saved[0]["quantity"] == 2
        assert saved[0]["updatedAt"] == 1700000000000
        assert session.is_cart_open is True

    def test_toggle_favorite_as_guest(self, session, storage):
        session.on_auth_state_changed(None)
        assert session.toggle_favorite("p1") is True
        assert storage.read_json(FAVORITES_KEY) == ["p1"]
        assert session.toggle_favorite("p1") is False
        assert storage.read_json(FAVORITES_KEY) == []

    def test_nothing_persisted_while_loading(self, session, storage):
        """Should not overwrite local storage before the initial load."""
        storage.write_json(CART_KEY, [cart_line("p1", "M", "Mavi")])
        session._persist_guest_state()
        assert storage.read_json(CART_KEY) == [cart_line("p1", "M", "Mavi")]


class TestSignIn:
    def test_creates_user_document(self, session, store):
        """Should create the remote document on first login."""
        session.on_auth_state_changed(AYSE)
        assert store.get(USERS, "u1")["cart"] == []

    def test_merges_guest_cart_on_login(self, session, store, storage):
        """Should merge local data and reflect it through the subscription."""
        store.set(USERS, "u1", {"cart": [cart_line("A", "M", "Red", quantity=1)], "favorites": ["p1"]})
        storage.write_json(CART_KEY, [cart_line("A", "M", "Red", quantity=2)])
        storage.write_json(FAVORITES_KEY, ["p2"])

        session.on_auth_state_changed(AYSE)

        assert session.cart[0]["quantity"] == 3
        assert session.favorites == ["p1", "p2"]
        assert not storage.has_item(CART_KEY)

    def test_merge_failure_is_logged_not_raised(self, session, store, storage, caplog):
        """Should keep the session usable when the merge write fails."""
        store.set(USERS, "u1", {"cart": [], "favorites": []})
        storage.write_json(CART_KEY, [cart_line("A", "M", "Red")])
        store.fail_updates = True

        session.on_auth_state_changed(AYSE)

        assert session.user == AYSE
        assert session.cart == []
        assert not storage.has_item(CART_KEY)
        assert "No se pudo fusionar" in caplog.text

    def test_subscription_failure_is_logged_and_merge_still_runs(
        self, session, store, storage, caplog, monkeypatch
    ):
        """Should log a failed first read, leave no listener behind and still merge."""
        store.set(USERS, "u1", {"cart": [], "favorites": []})
        storage.write_json(CART_KEY, [cart_line("A", "M", "Red")])
        subscribe = store.on_snapshot

        def offline_subscribe(collection, doc_id, callback):
            store.fail_reads = 1
            return subscribe(collection, doc_id, callback)

        monkeypatch.setattr(store, "on_snapshot", offline_subscribe)

        session.on_auth_state_changed(AYSE)
        session.close()

        assert session.user == AYSE
        assert "No se pudo suscribir" in caplog.text
        assert store._listeners == {}
        assert [l["productId"] for l in store.get(USERS, "u1")["cart"]] == ["A"]
        assert not storage.has_item(CART_KEY)

    def test_same_user_does_not_merge_again(self, session, store, storage):
        """Should ignore a repeated notification for the same user."""
        session.on_auth_state_changed(AYSE)
        store.update_calls.clear()
        storage.write_json(CART_KEY, [cart_line("A", "M", "Red")])

        session.on_auth_state_changed(AYSE)

        assert store.update_calls == []

    def test_sign_out_returns_to_guest(self, session, storage):
        session.on_auth_state_changed(AYSE)
        session.on_auth_state_changed(None)
        assert session.user is None
        assert session.cart == []


class TestLiveSync:
    def test_remote_changes_replace_state(self, session, store):
        """Should replace cart and favorites on every remote write."""
        session.on_auth_state_changed(AYSE)

        # Otro dispositivo escribe el mismo documento
        store.update(USERS, "u1", {"cart": [cart_line("Z", "S", "Siyah")], "favorites": ["p7"]})

        assert [l["productId"] for l in session.cart] == ["Z"]
        assert session.favorites == ["p7"]

    def test_mutations_go_through_the_document(self, session, store, make_product):
        session.on_auth_state_changed(AYSE)
        product = make_product()

        session.add_to_cart(product, "L", "Mavi")
        session.update_quantity(product.id, "L", "Mavi", 5)

        assert store.get(USERS, "u1")["cart"][0]["quantity"] == 5
        assert session.cart_count == 5

    def test_update_cart_item_changes_variant(self, session, store, make_product):
        session.on_auth_state_changed(AYSE)
        product = make_product()
        session.add_to_cart(product, "L", "Mavi")

        session.update_cart_item(product.id, "L", "Mavi", "M", "Kırmızı")

        line = store.get(USERS, "u1")["cart"][0]
        assert (line["selectedSize"], line["selectedColor"]) == ("M", "Kırmızı")

    def test_clear_cart(self, session, store, make_product):
        session.on_auth_state_changed(AYSE)
        session.add_to_cart(make_product(), "L", "Mavi")
        session.clear_cart()
        assert store.get(USERS, "u1")["cart"] == []
        assert session.cart == []

    def test_close_unsubscribes(self, session, store):
        session.on_auth_state_changed(AYSE)
        session.close()
        store.update(USERS, "u1", {"favorites": ["p7"]})
        assert session.favorites == []


class TestFavorites:
    def test_toggle_writes_array_ops(self, session, store):
        session.on_auth_state_changed(AYSE)
        assert session.toggle_favorite("p1") is True
        assert store.get(USERS, "u1")["favorites"] == ["p1"]
        assert session.toggle_favorite("p1") is False
        assert store.get(USERS, "u1")["favorites"] == []

    def test_rollback_on_write_failure(self, session, store):
        """Should restore the previous favorites when the write fails."""
        store.set(USERS, "u1", {"cart": [], "favorites": ["p1"]})
        session.on_auth_state_changed(AYSE)
        store.fail_updates = True

        assert session.toggle_favorite("p2") is False
        assert session.favorites == ["p1"]
        assert session.is_favorite("p2") is False

    def test_failed_notification_does_not_roll_back(self, session, store):
        """Should keep the favorite when the write succeeded but the refresh read failed."""
        session.on_auth_state_changed(AYSE)
        store.fail_reads = 1

        assert session.toggle_favorite("p1") is True
        assert session.favorites == ["p1"]
        assert store.get(USERS, "u1")["favorites"] == ["p1"]

    def test_add_to_cart_failure_returns_false(self, session, store, make_product):
        session.on_auth_state_changed(AYSE)
        store.fail_updates = True
        assert session.add_to_cart(make_product(), "M", "Mavi") is False
        assert session.cart == []
