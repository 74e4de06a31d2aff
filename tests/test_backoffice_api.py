"""HTTP tests for the admin panel and the x-api-key JSON API."""

import io

import pytest
from conftest import API_KEY
from helpers import cart_line

from valmore import orders
from valmore.checkout import CheckoutForm, build_order
from valmore.variations import VariationBuilder

HEADERS = {"x-api-key": API_KEY}

NEW_PRODUCT = {
    "name": "Slim Fit Jean",
    "description": "Esnek kumaştan slim fit jean pantolon.",
    "price": 899,
    "category": "Pantolonlar",
    "images": [{"url": "https://img.test/jean.jpg"}],
    "sizes": ["30", "32"],
}


@pytest.fixture
def client(backoffice_client):
    return backoffice_client


@pytest.fixture
def admin(client):
    res = client.post("/admin/login", data={"username": "admin", "password": "admin-pass"}, follow_redirects=False)
    assert res.status_code == 303
    return client


@pytest.fixture
def order_id(store):
    form = CheckoutForm(
        first_name="Ayşe",
        last_name="Yılmaz",
        email="ayse@gmail.com",
        phone="5321234567",
        address="Bağdat Caddesi No: 10",
        city="İstanbul",
        state="Kadıköy",
        zip_code="34710",
    )
    return orders.create_order(store, build_order(form, [cart_line("p1", "M", "Mavi", price=250)]))


class TestAdminLogin:
    def test_panel_requires_login(self, client):
        res = client.get("/admin", follow_redirects=False)
        assert res.status_code == 307
        assert res.headers["location"] == "/admin/login?error=1"

    def test_wrong_password(self, client):
        res = client.post("/admin/login", data={"username": "admin", "password": "nope"})
        assert res.status_code == 401

    def test_rate_limit(self, client):
        for _ in range(5):
            client.post("/admin/login", data={"username": "admin", "password": "nope"})
        res = client.post("/admin/login", data={"username": "admin", "password": "nope"})
        assert res.status_code == 429

    def test_dashboard(self, admin, order_id):
        res = admin.get("/admin")
        assert res.status_code == 200
        assert "₺350,00" in res.text

    def test_logout(self, admin):
        admin.get("/admin/logout")
        assert admin.get("/admin", follow_redirects=False).status_code == 307


class TestAdminProducts:
    def _create(self, admin, **overrides):
        data = {
            "name": "Oxford Gömlek",
            "description": "Pamuklu oxford gömlek, regular fit.",
            "price": "500",
            "category": "Gömlekler",
            "gender": "Male",
            "image_urls": "https://img.test/oxford.jpg",
            "sizes": "S, M, L",
            "colors": "Mavi",
            "in_stock": "on",
        }
        data.update(overrides)
        return admin.post("/admin/products", data=data, follow_redirects=False)

    def test_create_product(self, admin, store):
        res = self._create(admin)
        assert res.status_code == 303
        products = store.query("products")
        assert products[0]["sizes"] == ["S", "M", "L"]
        assert res.headers["location"] == f"/admin/products/{products[0]['id']}/edit"

    def test_create_invalid_product_redirects_with_error(self, admin, store):
        res = self._create(admin, description="kısa")
        assert res.status_code == 303
        assert "error=" in res.headers["location"]
        assert store.count("products") == 0

    def test_list_and_filter(self, admin, make_product):
        make_product(name="Oxford Gömlek")
        make_product(name="Kot Pantolon", category="Pantolonlar", isDiscounted=False)

        res = admin.get("/admin/products", params={"q_name": "oxford"})

        assert res.status_code == 200
        assert "Oxford Gömlek" in res.text
        assert "Kot Pantolon" not in res.text

    def test_edit_page_and_save(self, admin, store, make_product):
        product = make_product()
        assert admin.get(f"/admin/products/{product.id}/edit").status_code == 200

        res = self._create_edit(admin, product.id, price="450")

        assert res.status_code == 303
        assert store.get("products", product.id)["price"] == 450

    def _create_edit(self, admin, product_id, **overrides):
        data = {
            "name": "Oxford Gömlek",
            "description": "Pamuklu oxford gömlek, regular fit.",
            "price": "500",
            "category": "Gömlekler",
            "image_urls": "https://img.test/oxford.jpg",
            "in_stock": "on",
        }
        data.update(overrides)
        return admin.post(f"/admin/products/{product_id}/edit", data=data, follow_redirects=False)

    def test_delete(self, admin, store, make_product):
        product = make_product()
        admin.post(f"/admin/products/{product.id}/delete", follow_redirects=False)
        assert store.get("products", product.id) is None
        assert admin.post(f"/admin/products/{product.id}/delete").status_code == 404

    def test_csv_import(self, admin, store):
        content = (
            "name,description,price,original_price,category,image_url,sizes,colors\n"
            "Keten Gömlek,Yazlık keten gömlek modeli.,700,900,Gömlekler,https://img.test/k.jpg,S|M,Bej|Beyaz\n"
            ",sin nombre,100,,Gömlekler,https://img.test/x.jpg,,\n"
            "Bozuk,kısa,abc,,Gömlekler,https://img.test/y.jpg,,\n"
        )
        res = admin.post(
            "/admin/products/import",
            files={"file": ("products.csv", io.BytesIO(content.encode("utf-8")), "text/csv")},
            follow_redirects=False,
        )

        assert res.headers["location"] == "/admin/products?imported=1"
        saved = store.query("products")[0]
        assert saved["colors"] == ["Bej", "Beyaz"]
        assert saved["isDiscounted"] is True


class TestAdminVariations:
    def test_add_and_remove(self, admin, store, make_product):
        product = make_product()

        admin.post(
            f"/admin/products/{product.id}/variations",
            data={"color": "Kırmızı", "sizes": ["S", "M"], "stock_status": "on"},
            follow_redirects=False,
        )
        doc = store.get("products", product.id)
        assert [v["sku"] for v in doc["variations"]] == ["OXFORDGOML-KIRMIZI-S", "OXFORDGOML-KIRMIZI-M"]
        assert doc["hasVariants"] is True

        variation_id = doc["variations"][0]["id"]
        admin.post(f"/admin/products/{product.id}/variations/{variation_id}/delete", follow_redirects=False)
        assert len(store.get("products", product.id)["variations"]) == 1

        admin.post(
            f"/admin/products/{product.id}/variations/remove-color",
            data={"color": "Kırmızı"},
            follow_redirects=False,
        )
        doc = store.get("products", product.id)
        assert doc["variations"] == []
        assert doc["hasVariants"] is False

    def test_remove_legacy_variation(self, admin, store, make_product):
        """Should delete a variation of a product that only has grouped variants."""
        product = make_product(variants=[{"color": "Bej", "sizes": ["M", "L"], "inStock": True}])
        shown = VariationBuilder.from_product(product).variations[0].id

        res = admin.post(f"/admin/products/{product.id}/variations/{shown}/delete", follow_redirects=False)

        assert res.status_code == 303
        doc = store.get("products", product.id)
        assert [(v["color"], v["size"]) for v in doc["variations"]] == [("Bej", "L")]

    def test_duplicate_redirects_with_error(self, admin, store, make_product):
        product = make_product()
        data = {"color": "Mavi", "sizes": ["M"], "stock_status": "on"}
        admin.post(f"/admin/products/{product.id}/variations", data=data, follow_redirects=False)

        res = admin.post(f"/admin/products/{product.id}/variations", data=data, follow_redirects=False)

        assert "error=" in res.headers["location"]
        assert len(store.get("products", product.id)["variations"]) == 1


class TestAdminOrders:
    def test_list_and_detail(self, admin, order_id):
        assert "Ayşe Yılmaz" in admin.get("/admin/orders").text
        assert admin.get("/admin/orders", params={"q_status": "shipped"}).text.count("Ayşe Yılmaz") == 0
        assert admin.get(f"/admin/orders/{order_id}").status_code == 200

    def test_update_status(self, admin, store, order_id):
        res = admin.post(
            f"/admin/orders/{order_id}/status",
            data={"status": "shipped", "carrier": "Aras Kargo", "tracking_number": "AR1"},
            follow_redirects=False,
        )
        assert res.status_code == 303
        order = orders.fetch_order(store, order_id)
        assert (order.status, order.carrier, order.tracking_number) == ("shipped", "Aras Kargo", "AR1")

    def test_invalid_status(self, admin, order_id):
        res = admin.post(f"/admin/orders/{order_id}/status", data={"status": "lost"}, follow_redirects=False)
        assert "error=" in res.headers["location"]


class TestJsonApi:
    def test_requires_api_key(self, client):
        assert client.get("/products").status_code == 401

    def test_product_crud(self, client):
        created = client.post("/products", json=NEW_PRODUCT, headers=HEADERS)
        assert created.status_code == 200
        product_id = created.json()["id"]
        assert created.json()["slug"].startswith("slim-fit-jean-")

        updated = client.put(f"/products/{product_id}", json={**NEW_PRODUCT, "price": 799}, headers=HEADERS)
        assert updated.json()["price"] == 799

        assert len(client.get("/products", headers=HEADERS).json()) == 1
        assert client.delete(f"/products/{product_id}", headers=HEADERS).status_code == 200
        assert client.get(f"/products/{product_id}", headers=HEADERS).status_code == 404

    def test_invalid_product(self, client):
        res = client.post("/products", json={**NEW_PRODUCT, "images": []}, headers=HEADERS)
        assert res.status_code == 422

    def test_variations_conflict(self, client):
        product_id = client.post("/products", json=NEW_PRODUCT, headers=HEADERS).json()["id"]
        body = {"color": "Lacivert", "sizes": ["30", "32"]}

        first = client.post(f"/products/{product_id}/variations", json=body, headers=HEADERS)
        assert first.status_code == 200
        assert first.json()["colors"] == ["Lacivert"]

        second = client.post(f"/products/{product_id}/variations", json=body, headers=HEADERS)
        assert second.status_code == 409
        assert len(second.json()["detail"]["duplicates"]) == 2

        variation_id = first.json()["variations"][0]["id"]
        res = client.delete(f"/products/{product_id}/variations/{variation_id}", headers=HEADERS)
        assert len(res.json()["variations"]) == 1

    def test_seed(self, client, store):
        assert client.post("/products/seed", params={"count": 3}, headers=HEADERS).json()["created"] == 3
        assert client.post("/products/seed", headers=HEADERS).json()["status"] == "skipped"

    def test_orders_and_stats(self, client, order_id):
        assert [o["id"] for o in client.get("/orders", headers=HEADERS).json()] == [order_id]
        assert client.get("/orders", params={"status": "delivered"}, headers=HEADERS).json() == []

        res = client.post(f"/orders/{order_id}/status", json={"status": "delivered"}, headers=HEADERS)
        assert res.json()["status"] == "delivered"

        assert client.post(f"/orders/{order_id}/status", json={"status": "lost"}, headers=HEADERS).status_code == 400
        assert client.post("/orders/ghost/status", json={"status": "shipped"}, headers=HEADERS).status_code == 404

        stats = client.get("/stats", headers=HEADERS).json()
        assert stats["totalOrders"] == 1
        assert stats["recentOrders"][0]["orderNumber"].startswith("ORD-")
