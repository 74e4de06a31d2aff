"""
checkout.py
Formulario de checkout: validación de campos, armado de la orden y
confirmación de la compra.
"""

import logging
import re
from typing import Callable, Dict, List, Optional

from valmore import config
from valmore.accounts import AuthUser
from valmore.orders import create_order
from valmore.schemas import CamelModel, Customer, Order, OrderItem, ShippingAddress

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^5\d{9}$")
CARD_RE = re.compile(r"^\d{16}$")
EXPIRY_RE = re.compile(r"^\d{2}/\d{2}$")
CVC_RE = re.compile(r"^\d{3,4}$")


class CheckoutError(ValueError):
    pass


class CheckoutForm(CamelModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "Türkiye"
    card_number: str = ""
    card_name: str = ""
    card_expiry: str = ""
    card_cvc: str = ""


# campo -> clave de traducción de la etiqueta
_REQUIRED = {
    "first_name": "checkout.firstName",
    "last_name": "checkout.lastName",
    "email": "checkout.email",
    "phone": "checkout.phone",
    "address": "checkout.address",
    "city": "checkout.city",
    "state": "checkout.state",
    "zip_code": "checkout.zipCode",
    "card_number": "checkout.cardNumber",
    "card_name": "checkout.cardName",
    "card_expiry": "checkout.expiryDate",
    "card_cvc": "checkout.cvc",
}


def validate_checkout(form: CheckoutForm, t: Callable[[str], str]) -> Dict[str, str]:
    """Devuelve {campo: mensaje}. Vacío si el formulario es válido."""
    errors: Dict[str, str] = {}
    data = form.model_dump()

    for field, label_key in _REQUIRED.items():
        if not str(data.get(field) or "").strip():
            errors[field] = f"{t(label_key)} {t('checkout.required')}"

    if "email" not in errors and not EMAIL_RE.match(form.email.strip()):
        errors["email"] = t("checkout.invalidEmail")
    if "phone" not in errors and not PHONE_RE.match(form.phone.strip()):
        errors["phone"] = t("checkout.invalidPhone")
    if "card_number" not in errors and not CARD_RE.match(form.card_number.replace(" ", "")):
        errors["card_number"] = t("checkout.invalidCard")
    if "card_expiry" not in errors and not EXPIRY_RE.match(form.card_expiry.strip()):
        errors["card_expiry"] = t("checkout.invalidExpiry")
    if "card_cvc" not in errors and not CVC_RE.match(form.card_cvc.strip()):
        errors["card_cvc"] = t("checkout.invalidCVC")
    return errors


def shipping_cost(subtotal: float) -> float:
    if subtotal >= config.FREE_SHIPPING_THRESHOLD:
        return 0
    return config.SHIPPING_COST


def build_order(form: CheckoutForm, cart: List[Dict], user: Optional[AuthUser] = None) -> Order:
    items = [
        OrderItem(
            product_id=line["productId"],
            name=line["name"],
            price=line["price"],
            quantity=line["quantity"],
            image=line.get("image") or "",
            selected_size=line.get("selectedSize") or "",
            selected_color=line.get("selectedColor") or "",
        )
        for line in cart
    ]
    subtotal = sum(i.price * i.quantity for i in items)
    shipping = shipping_cost(subtotal)
    full_name = f"{form.first_name.strip()} {form.last_name.strip()}"

    return Order(
        user_id=user.uid if user else None,
        customer=Customer(
            full_name=full_name,
            email=form.email.strip(),
            # Se guarda con el 0 de línea nacional
            phone="0" + form.phone.strip(),
        ),
        items=items,
        subtotal=subtotal,
        shipping_cost=shipping,
        total=subtotal + shipping,
        currency=config.CURRENCY,
        shipping_address=ShippingAddress(
            full_name=full_name,
            address=form.address.strip(),
            city=form.city.strip(),
            district=form.state.strip(),
            zip_code=form.zip_code.strip(),
            country=form.country or "Türkiye",
        ),
    )


def place_order(session, form: CheckoutForm) -> str:
    """
    Crea la orden con el carrito actual de la sesión y después vacía el
    carrito. Devuelve el id de la orden.
    """
    if not session.cart:
        raise CheckoutError("El carrito está vacío")

    order = build_order(form, session.cart, session.user)
    order_id = create_order(session.store, order)
    logger.info("Orden %s creada (%s items)", order_id, len(order.items))

    session.clear_cart()
    return order_id
