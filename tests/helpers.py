"""Helpers shared by the tests."""


def cart_line(product_id, size, color, quantity=1, price=100.0, updated_at=0):
    """Build a cart line dict in the stored (camelCase) shape."""
    return {
        "productId": product_id,
        "name": f"Product {product_id}",
        "price": price,
        "image": "",
        "selectedSize": size,
        "selectedColor": color,
        "quantity": quantity,
        "barcode": None,
        "updatedAt": updated_at,
    }
