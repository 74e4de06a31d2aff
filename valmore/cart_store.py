"""
cart_store.py
Operaciones sobre las líneas del carrito.
Un carrito es una lista de dicts en camelCase, igual a como se guarda
(en la sesión del invitado o en el documento del usuario).
Todas las funciones devuelven una lista nueva; nunca mutan la recibida.
"""

import copy
from typing import Dict, List, Optional, Tuple

from valmore.schemas import Product

# Talle / color para productos sin ese eje
STANDARD_OPTION = "Standard"

LineKey = Tuple[str, str, str]


def line_key(line: Dict) -> LineKey:
    # Una línea guardada incompleta no coincide con ninguna clave real
    return (line.get("productId"), line.get("selectedSize"), line.get("selectedColor"))


def find_line(cart: List[Dict], product_id: str, size: str, color: str) -> Optional[int]:
    key = (product_id, size, color)
    for i, line in enumerate(cart):
        if line_key(line) == key:
            return i
    return None


def _variant_barcode(product: Product, size: str, color: str) -> Optional[str]:
    for v in product.variations:
        if v.color == color and v.size == size and v.barcode:
            return v.barcode
    for v in product.variants:
        if v.color == color and size in v.sizes and v.barcode:
            return v.barcode
    return product.barcode


def _image_for_color(product: Product, color: str) -> str:
    for img in product.images:
        if img.color == color:
            return img.url
    return product.images[0].url if product.images else ""


def build_line(product: Product, size: str, color: str, now_ms: int) -> Dict:
    """
    Arma la línea de carrito con el snapshot del producto (precio, imagen
    del color elegido y barcode de la variante).
    """
    return {
        "productId": product.id,
        "name": product.name,
        "price": product.price,
        "image": _image_for_color(product, color),
        "selectedSize": size,
        "selectedColor": color,
        "quantity": 1,
        "barcode": _variant_barcode(product, size, color),
        "updatedAt": now_ms,
    }


def add_line(cart: List[Dict], line: Dict) -> List[Dict]:
    """
    Agrega una línea. Si ya existe la misma combinación producto/talle/color,
    acumula la cantidad en vez de duplicar.
    """
    new_cart = copy.deepcopy(cart)
    idx = find_line(new_cart, *line_key(line))
    if idx is not None:
        new_cart[idx]["quantity"] += line.get("quantity", 1)
        new_cart[idx]["updatedAt"] = line.get("updatedAt", new_cart[idx].get("updatedAt", 0))
    else:
        new_cart.append(dict(line))
    return new_cart


def remove_line(cart: List[Dict], product_id: str, size: str, color: str) -> List[Dict]:
    key = (product_id, size, color)
    return [copy.deepcopy(line) for line in cart if line_key(line) != key]


def set_quantity(cart: List[Dict], product_id: str, size: str, color: str, quantity: int) -> List[Dict]:
    if quantity <= 0:
        return remove_line(cart, product_id, size, color)
    new_cart = copy.deepcopy(cart)
    idx = find_line(new_cart, product_id, size, color)
    if idx is not None:
        new_cart[idx]["quantity"] = quantity
    return new_cart


def change_variant(
    cart: List[Dict],
    product_id: str,
    old_size: str,
    old_color: str,
    new_size: str,
    new_color: str,
    now_ms: int,
) -> List[Dict]:
    """
    Cambia talle/color de una línea conservando su cantidad.
    Si la combinación nueva ya estaba en el carrito, se suman las cantidades.
    """
    idx = find_line(cart, product_id, old_size, old_color)
    if idx is None:
        return copy.deepcopy(cart)

    existing = copy.deepcopy(cart[idx])
    new_cart = remove_line(cart, product_id, old_size, old_color)

    target = find_line(new_cart, product_id, new_size, new_color)
    if target is not None:
        new_cart[target]["quantity"] += existing["quantity"]
        new_cart[target]["updatedAt"] = now_ms
    else:
        existing.update(selectedSize=new_size, selectedColor=new_color, updatedAt=now_ms)
        new_cart.append(existing)
    return new_cart


def cart_count(cart: List[Dict]) -> int:
    return sum(int(line.get("quantity", 0)) for line in cart)


def cart_subtotal(cart: List[Dict]) -> float:
    return sum(float(line.get("price", 0)) * int(line.get("quantity", 0)) for line in cart)


def sorted_by_recency(cart: List[Dict]) -> List[Dict]:
    return sorted(cart, key=lambda line: line.get("updatedAt", 0), reverse=True)
