import logging
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, EmailStr, Field, ValidationError
from starlette.middleware.sessions import SessionMiddleware

from valmore import catalog, config, profiles
from valmore.accounts import AccountError, AuthUser, authenticate, get_user, register
from valmore.cart_store import STANDARD_OPTION, sorted_by_recency
from valmore.checkout import CheckoutError, CheckoutForm, place_order, shipping_cost, validate_checkout
from valmore.database import get_store, init_db
from valmore.documents import DocumentNotFound, DocumentStore, DocumentStoreError
from valmore.guest_storage import GuestStorage
from valmore.i18n import LANGUAGES, LanguageStore
from valmore.orders import fetch_order, fetch_user_orders
from valmore.schemas import Address, CamelModel, ProfileUpdate
from valmore.shop_session import ShopSession

logger = logging.getLogger(__name__)

SESSION_USER_KEY = "uid"

app = FastAPI(
    title="Valmoré Storefront API",
    description="Catálogo, carrito, favoritos y checkout de la tienda.",
    version="0.1.0",
)

# La cookie de sesión firmada hace de almacenamiento local del invitado
app.add_middleware(SessionMiddleware, secret_key=config.SESSION_SECRET_KEY)


@app.on_event("startup")
def on_startup():
    init_db()


# -------------------------
# Errores
# -------------------------
@app.exception_handler(DocumentNotFound)
def handle_not_found(request: Request, exc: DocumentNotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(DocumentStoreError)
def handle_store_error(request: Request, exc: DocumentStoreError):
    logger.error("Error de base en %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Servicio no disponible. Intentá de nuevo."})


# -------------------------
# Dependencias
# -------------------------
def get_guest_storage(request: Request) -> GuestStorage:
    return GuestStorage(request.session)


def get_shop_session(
    request: Request,
    store: DocumentStore = Depends(get_store),
    storage: GuestStorage = Depends(get_guest_storage),
):
    shop = ShopSession(store, storage)
    uid = request.session.get(SESSION_USER_KEY)
    user = get_user(store, uid) if uid else None
    if uid and not user:
        request.session.pop(SESSION_USER_KEY, None)
    shop.on_auth_state_changed(user)
    with shop:
        yield shop


def get_language(storage: GuestStorage = Depends(get_guest_storage)) -> LanguageStore:
    return LanguageStore(storage)


def require_user(shop: ShopSession = Depends(get_shop_session)) -> ShopSession:
    if not shop.user:
        raise HTTPException(status_code=401, detail="Tenés que iniciar sesión")
    return shop


# -------------------------
# Pydantic models (API JSON)
# -------------------------
class CartItemRequest(CamelModel):
    product_id: str
    size: str = ""
    color: str = ""


class QuantityRequest(CartItemRequest):
    quantity: int


class ChangeVariantRequest(CamelModel):
    product_id: str
    old_size: str
    old_color: str
    new_size: str
    new_color: str


class RegisterRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    full_name: str = Field(..., min_length=2)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LanguageRequest(BaseModel):
    language: str


def _user_payload(user: AuthUser) -> Dict[str, Any]:
    return {"uid": user.uid, "email": user.email, "fullName": user.full_name}


def _cart_payload(shop: ShopSession) -> Dict[str, Any]:
    subtotal = shop.cart_subtotal
    shipping = shipping_cost(subtotal) if shop.cart else 0
    return {
        "items": sorted_by_recency(shop.cart),
        "count": shop.cart_count,
        "subtotal": subtotal,
        "shippingCost": shipping,
        "total": subtotal + shipping,
    }


def _session_payload(shop: ShopSession) -> Dict[str, Any]:
    return {
        "user": _user_payload(shop.user) if shop.user else None,
        "cart": _cart_payload(shop),
        "favorites": shop.favorites,
    }


# -------------------------
# API JSON: CATÁLOGO
# -------------------------
@app.get("/api/products")
def api_list_products(
    gender: str = Query("ALL"),
    q: str = Query(""),
    category: str = Query("all"),
    sizes: List[str] = Query([]),
    min_price: float = Query(0),
    max_price: float = Query(10000),
    discounted: bool = Query(False),
    sort: str = Query("newest"),
    page: int = Query(1, ge=1),
    store: DocumentStore = Depends(get_store),
) -> Dict[str, Any]:
    if sort not in catalog.SORT_OPTIONS:
        raise HTTPException(status_code=400, detail=f"Orden inválido: {sort}")
    products = catalog.filter_products(
        catalog.get_all_products(store),
        gender=gender,
        query=q,
        category=category,
        sizes=sizes,
        price_range=(min_price, max_price),
        discounted_only=discounted,
    )
    result = catalog.paginate(catalog.sort_products(products, sort), page, config.ITEMS_PER_PAGE)
    result["items"] = [p.model_dump(by_alias=True) for p in result["items"]]
    return result


@app.get("/api/products/featured")
def api_featured_products(store: DocumentStore = Depends(get_store)) -> List[Dict[str, Any]]:
    return [p.model_dump(by_alias=True) for p in catalog.get_featured_products(store)]


@app.get("/api/products/{product_id}")
def api_get_product(product_id: str, store: DocumentStore = Depends(get_store)) -> Dict[str, Any]:
    product = catalog.get_product(store, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    related = catalog.get_related_products(store, product.id, product.category)
    return {
        "product": product.model_dump(by_alias=True),
        "price": catalog.calculate_product_price(product),
        "sizeRequired": catalog.is_size_required(product.category),
        "colorHex": {c: catalog.color_hex(c) for c in product.colors},
        "related": [p.model_dump(by_alias=True) for p in related],
    }


@app.get("/api/categories")
def api_categories() -> Dict[str, Any]:
    return {
        "categories": catalog.PRODUCT_CATEGORIES,
        "genders": catalog.GENDER_OPTIONS,
        "clothingSizes": catalog.CLOTHING_SIZES,
        "shoeSizes": catalog.SHOE_SIZES,
        "sortOptions": list(catalog.SORT_OPTIONS),
    }


# -------------------------
# API JSON: CARRITO
# -------------------------
@app.get("/api/cart")
def api_cart(shop: ShopSession = Depends(get_shop_session)) -> Dict[str, Any]:
    return _cart_payload(shop)


@app.post("/api/cart/items")
def api_cart_add_item(
    payload: CartItemRequest,
    shop: ShopSession = Depends(get_shop_session),
    lang: LanguageStore = Depends(get_language),
) -> Dict[str, Any]:
    product = catalog.get_product(shop.store, payload.product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    if not product.in_stock:
        raise HTTPException(status_code=400, detail=lang.t("products.outOfStock"))

    size = payload.size
    if not size:
        if catalog.is_size_required(product.category) and product.sizes:
            raise HTTPException(status_code=400, detail=lang.t("products.selectSize"))
        size = STANDARD_OPTION
    color = payload.color
    if not color:
        if product.colors:
            raise HTTPException(status_code=400, detail=lang.t("products.selectColor"))
        color = STANDARD_OPTION

    if not shop.add_to_cart(product, size, color):
        raise HTTPException(status_code=503, detail="No se pudo agregar al carrito")
    return _cart_payload(shop)


@app.patch("/api/cart/items")
def api_cart_update_quantity(
    payload: QuantityRequest,
    shop: ShopSession = Depends(get_shop_session),
) -> Dict[str, Any]:
    shop.update_quantity(payload.product_id, payload.size, payload.color, payload.quantity)
    return _cart_payload(shop)


@app.post("/api/cart/items/remove")
def api_cart_remove_item(
    payload: CartItemRequest,
    shop: ShopSession = Depends(get_shop_session),
) -> Dict[str, Any]:
    shop.remove_from_cart(payload.product_id, payload.size, payload.color)
    return _cart_payload(shop)


@app.post("/api/cart/items/change")
def api_cart_change_variant(
    payload: ChangeVariantRequest,
    shop: ShopSession = Depends(get_shop_session),
) -> Dict[str, Any]:
    shop.update_cart_item(
        payload.product_id,
        payload.old_size,
        payload.old_color,
        payload.new_size,
        payload.new_color,
    )
    return _cart_payload(shop)


@app.post("/api/cart/clear")
def api_cart_clear(shop: ShopSession = Depends(get_shop_session)) -> Dict[str, Any]:
    shop.clear_cart()
    return _cart_payload(shop)


# -------------------------
# API JSON: FAVORITOS
# -------------------------
@app.get("/api/favorites")
def api_favorites(shop: ShopSession = Depends(get_shop_session)) -> Dict[str, Any]:
    products = [catalog.get_product(shop.store, pid) for pid in shop.favorites]
    return {
        "favorites": shop.favorites,
        "products": [p.model_dump(by_alias=True) for p in products if p],
    }


@app.post("/api/favorites/{product_id}/toggle")
def api_toggle_favorite(product_id: str, shop: ShopSession = Depends(get_shop_session)) -> Dict[str, Any]:
    is_favorite = shop.toggle_favorite(product_id)
    return {"productId": product_id, "isFavorite": is_favorite, "favorites": shop.favorites}


# -------------------------
# AUTH
# -------------------------
@app.post("/auth/register", status_code=status.HTTP_201_CREATED)
def auth_register(
    payload: RegisterRequest,
    request: Request,
    shop: ShopSession = Depends(get_shop_session),
) -> Dict[str, Any]:
    try:
        user = register(shop.store, payload.email, payload.password, payload.full_name)
    except AccountError as e:
        raise HTTPException(status_code=400, detail=str(e))
    request.session[SESSION_USER_KEY] = user.uid
    shop.on_auth_state_changed(user)
    return _session_payload(shop)


@app.post("/auth/login")
def auth_login(
    payload: LoginRequest,
    request: Request,
    shop: ShopSession = Depends(get_shop_session),
) -> Dict[str, Any]:
    user = authenticate(shop.store, payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Email o contraseña incorrectos")
    request.session[SESSION_USER_KEY] = user.uid
    # La transición invitado -> usuario dispara la fusión del carrito
    shop.on_auth_state_changed(user)
    return _session_payload(shop)


@app.post("/auth/logout")
def auth_logout(request: Request, shop: ShopSession = Depends(get_shop_session)) -> Dict[str, Any]:
    request.session.pop(SESSION_USER_KEY, None)
    shop.on_auth_state_changed(None)
    return _session_payload(shop)


@app.get("/auth/me")
def auth_me(shop: ShopSession = Depends(require_user)) -> Dict[str, Any]:
    return _session_payload(shop)


# -------------------------
# CHECKOUT + ÓRDENES
# -------------------------
@app.post("/api/checkout", status_code=status.HTTP_201_CREATED)
def api_checkout(
    form: CheckoutForm,
    shop: ShopSession = Depends(get_shop_session),
    lang: LanguageStore = Depends(get_language),
):
    errors = validate_checkout(form, lang.t)
    if errors:
        return JSONResponse(status_code=422, content={"errors": errors})
    try:
        order_id = place_order(shop, form)
    except CheckoutError:
        raise HTTPException(status_code=400, detail=lang.t("checkout.emptyCart"))
    except ValidationError as e:
        # El formulario pasó las reglas básicas pero la orden no es válida (email, etc.)
        logger.warning("Orden rechazada por validación: %s", e.error_count())
        return JSONResponse(status_code=422, content={"errors": {"form": lang.t("checkout.orderError")}})
    order = fetch_order(shop.store, order_id)
    return {
        "orderId": order_id,
        "orderNumber": order.order_number if order else None,
        "total": order.total if order else None,
    }


@app.get("/api/orders")
def api_list_orders(shop: ShopSession = Depends(require_user)) -> List[Dict[str, Any]]:
    return [o.model_dump(by_alias=True) for o in fetch_user_orders(shop.store, shop.user_id)]


@app.get("/api/orders/{order_id}")
def api_get_order(order_id: str, shop: ShopSession = Depends(require_user)) -> Dict[str, Any]:
    order = fetch_order(shop.store, order_id)
    if not order or order.user_id != shop.user_id:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return order.model_dump(by_alias=True)


# -------------------------
# PERFIL
# -------------------------
@app.get("/api/profile")
def api_get_profile(shop: ShopSession = Depends(require_user)) -> Dict[str, Any]:
    profile = profiles.get_user_profile(shop.store, shop.user_id)
    if not profile:
        raise HTTPException(status_code=404, detail="Perfil no encontrado")
    return profile


@app.patch("/api/profile")
def api_update_profile(payload: ProfileUpdate, shop: ShopSession = Depends(require_user)) -> Dict[str, Any]:
    profiles.update_user_profile(shop.store, shop.user_id, payload)
    return profiles.get_user_profile(shop.store, shop.user_id)


@app.get("/api/profile/addresses")
def api_list_addresses(shop: ShopSession = Depends(require_user)) -> List[Dict[str, Any]]:
    profile = profiles.get_user_profile(shop.store, shop.user_id) or {}
    return profile.get("addresses", [])


@app.post("/api/profile/addresses", status_code=status.HTTP_201_CREATED)
def api_add_address(payload: Address, shop: ShopSession = Depends(require_user)) -> Dict[str, Any]:
    return profiles.add_address(shop.store, shop.user_id, payload)


@app.put("/api/profile/addresses/{address_id}")
def api_update_address(
    address_id: str,
    payload: Address,
    shop: ShopSession = Depends(require_user),
) -> Dict[str, Any]:
    if not profiles.update_address(shop.store, shop.user_id, address_id, payload):
        raise HTTPException(status_code=404, detail="Dirección no encontrada")
    return {"status": "ok"}


@app.delete("/api/profile/addresses/{address_id}")
def api_delete_address(address_id: str, shop: ShopSession = Depends(require_user)) -> Dict[str, Any]:
    if not profiles.delete_address(shop.store, shop.user_id, address_id):
        raise HTTPException(status_code=404, detail="Dirección no encontrada")
    return {"status": "ok"}


# -------------------------
# IDIOMA
# -------------------------
@app.get("/api/language")
def api_get_language(lang: LanguageStore = Depends(get_language)) -> Dict[str, Any]:
    return {"language": lang.language, "languages": list(LANGUAGES)}


@app.post("/api/language")
def api_set_language(payload: LanguageRequest, lang: LanguageStore = Depends(get_language)) -> Dict[str, Any]:
    try:
        lang.set_language(payload.language)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"language": lang.language, "languages": list(LANGUAGES)}


@app.get("/api/i18n/{key:path}")
def api_translate(key: str, lang: LanguageStore = Depends(get_language)) -> Dict[str, Optional[str]]:
    return {"key": key, "language": lang.language, "value": lang.t(key)}
