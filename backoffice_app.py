import csv
import io
import logging
import time
from collections import defaultdict, deque
from typing import Any, Dict, List, Optional
from urllib.parse import quote_plus

from fastapi import (
    Depends,
    FastAPI,
    File,
    Form,
    Header,
    HTTPException,
    Query,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from pydantic import BaseModel, Field, ValidationError
from starlette.middleware.sessions import SessionMiddleware

from valmore import catalog, config, orders
from valmore.database import get_store, init_db
from valmore.documents import DocumentNotFound, DocumentStore
from valmore.i18n import format_price
from valmore.schemas import Product, ProductCreate
from valmore.variations import VariationBuilder

logger = logging.getLogger(__name__)

LOGIN_RATE_WINDOW = 60      # segundos
LOGIN_RATE_MAX = 5          # intentos
_login_attempts = defaultdict(deque)


def rate_limit_login(key: str):
    now = time.time()
    q = _login_attempts[key]

    while q and now - q[0] > LOGIN_RATE_WINDOW:
        q.popleft()

    if len(q) >= LOGIN_RATE_MAX:
        raise HTTPException(
            status_code=429,
            detail="Demasiados intentos. Esperá un minuto."
        )

    q.append(now)


def require_api_key(x_api_key: str = Header(default="")):
    if x_api_key != config.BACKOFFICE_API_KEY:
        raise HTTPException(status_code=401, detail="Unauthorized")


app = FastAPI(
    title="Valmoré Backoffice API + Admin",
    description="API + panel admin de la tienda Valmoré.",
    version="0.1.0",
)

# Sessions para login
app.add_middleware(SessionMiddleware, secret_key=config.SESSION_SECRET_KEY)

# Static & templates
app.mount("/static", StaticFiles(directory=config.BASE_DIR / "static"), name="static")
templates = Jinja2Templates(directory=str(config.BASE_DIR / "templates"))
templates.env.filters["price"] = format_price
templates.env.filters["status_text"] = orders.status_text


@app.on_event("startup")
def on_startup():
    init_db()


# -------------------------
# Pydantic models (API JSON)
# -------------------------
class VariationRequest(BaseModel):
    color: str = Field(..., min_length=1)
    sizes: List[str] = Field(..., min_length=1)
    stock_status: bool = True
    barcode: str = ""


class OrderStatusUpdate(BaseModel):
    status: str
    carrier: Optional[str] = None
    tracking_number: Optional[str] = None


def get_current_admin(request: Request):
    if request.session.get("is_admin") is True:
        return True
    raise HTTPException(
        status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        headers={"Location": "/admin/login?error=1"},
    )


def _split(value: Optional[str], sep: str = ",") -> List[str]:
    return [v.strip() for v in (value or "").split(sep) if v.strip()]


def _truthy(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in ("1", "true", "on", "sí", "si", "yes", "y", "evet")


def _product_or_404(store: DocumentStore, product_id: str) -> Product:
    product = catalog.get_product(store, product_id)
    if not product:
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return product


def _redirect(url: str, error: Optional[str] = None) -> RedirectResponse:
    if error:
        url = f"{url}?error={quote_plus(error)}"
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def _form_product(
    name: str,
    description: str,
    price: float,
    original_price: Optional[float],
    category: str,
    brand: str,
    gender: str,
    image_urls: str,
    sizes: str,
    colors: str,
    material: str,
    featured: Optional[str],
    in_stock: Optional[str],
) -> ProductCreate:
    """Arma el producto a partir del formulario. Levanta ValidationError."""
    return ProductCreate(
        name=name,
        description=description,
        price=price,
        original_price=original_price,
        is_discounted=bool(original_price) and price < original_price,
        category=category,
        brand=brand,
        gender=gender or "Unisex",
        images=[{"url": url} for url in _split(image_urls, "\n")],
        sizes=_split(sizes),
        colors=_split(colors),
        material=material or None,
        featured=bool(featured),
        in_stock=bool(in_stock),
    )


def _product_changes(current: Product, product: ProductCreate) -> Dict[str, Any]:
    changes = product.to_document()
    # Con variaciones, talles/colores/stock se derivan de ellas
    if current.variations:
        changes.update(VariationBuilder(current.variations).product_fields())
    else:
        for key in ("variations", "variants", "hasVariants"):
            changes.pop(key, None)
    changes.pop("createdAt", None)
    changes.pop("slug", None)
    return changes


def _validation_message(e: ValidationError) -> str:
    first = e.errors()[0]
    field = ".".join(str(p) for p in first.get("loc", ()))
    return f"{field}: {first.get('msg', 'inválido')}"


# -------------------------
# Rutas HTML: LOGIN + ADMIN
# -------------------------
@app.get("/admin/login", response_class=HTMLResponse)
def admin_login_page(request: Request):
    error_param = request.query_params.get("error")
    error = None
    if error_param == "1":
        error = "Tenés que iniciar sesión para acceder al panel de administración."
    return templates.TemplateResponse(
        "login.html", {"request": request, "error": error}
    )


@app.post("/admin/login", response_class=HTMLResponse)
def admin_login(
    request: Request,
    username: str = Form(...),
    password: str = Form(...),
):
    client_ip = request.client.host if request.client else "unknown"
    rate_limit_login(client_ip)

    if username == config.ADMIN_USER and password == config.ADMIN_PASSWORD:
        request.session["is_admin"] = True
        return RedirectResponse(url="/admin", status_code=303)

    logger.warning("Login admin fallido desde %s", client_ip)
    return templates.TemplateResponse(
        "login.html",
        {"request": request, "error": "Usuario o contraseña incorrectos."},
        status_code=401,
    )


@app.get("/admin/logout")
def admin_logout(request: Request):
    # La cookie se comparte con la tienda: solo sacamos la marca de admin
    request.session.pop("is_admin", None)
    return RedirectResponse(url="/admin/login", status_code=status.HTTP_303_SEE_OTHER)


@app.get("/admin", response_class=HTMLResponse)
def admin_dashboard(
    request: Request,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    stats = orders.dashboard_stats(store)
    return templates.TemplateResponse(
        "dashboard.html",
        {"request": request, "stats": stats},
    )


# -------------------------
# ADMIN HTML: PRODUCTS
# -------------------------
@app.get("/admin/products", response_class=HTMLResponse)
def admin_products(
    request: Request,
    q_sku: Optional[str] = Query(None),
    q_name: Optional[str] = Query(None),
    q_category: Optional[str] = Query(None),
    q_offer: Optional[str] = Query(None),  # checkbox -> llega como "on" si está tildado
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    products = catalog.get_all_products(store)

    if q_sku:
        sku = q_sku.strip().upper()
        products = [
            p for p in products
            if (p.sku or "").upper() == sku or any(v.sku == sku for v in p.variations)
        ]
    if q_name:
        products = [p for p in products if q_name.lower() in p.name.lower()]
    if q_category:
        products = [p for p in products if q_category.lower() in p.category.lower()]
    if q_offer:
        products = [p for p in products if p.is_discounted]

    return templates.TemplateResponse(
        "products.html",
        {
            "request": request,
            "products": products,
            "categories": catalog.PRODUCT_CATEGORIES,
            "genders": catalog.GENDER_OPTIONS,
            "q_sku": q_sku,
            "q_name": q_name,
            "q_category": q_category,
            "q_offer": bool(q_offer),
            "error": request.query_params.get("error"),
            "imported": request.query_params.get("imported"),
        },
    )


@app.post("/admin/products", response_class=HTMLResponse)
def admin_create_product(
    name: str = Form(...),
    description: str = Form(""),
    price: float = Form(...),
    original_price: Optional[float] = Form(None),
    category: str = Form(""),
    brand: str = Form(""),
    gender: str = Form("Unisex"),
    image_urls: str = Form(""),
    sizes: str = Form(""),
    colors: str = Form(""),
    material: str = Form(""),
    featured: Optional[str] = Form(None),
    in_stock: Optional[str] = Form("on"),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    try:
        product = _form_product(
            name, description, price, original_price, category, brand, gender,
            image_urls, sizes, colors, material, featured, in_stock,
        )
    except ValidationError as e:
        return _redirect("/admin/products", _validation_message(e))

    product_id = catalog.add_product(store, product)
    logger.info("Producto %s creado desde el panel", product_id)
    return _redirect(f"/admin/products/{product_id}/edit")


@app.get("/admin/products/{product_id}/edit", response_class=HTMLResponse)
def admin_product_edit_page(
    product_id: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    product = _product_or_404(store, product_id)
    builder = VariationBuilder.from_product(product)
    return templates.TemplateResponse(
        "product_edit.html",
        {
            "request": request,
            "product": product,
            "groups": builder.grouped_by_color(),
            "categories": catalog.PRODUCT_CATEGORIES,
            "genders": catalog.GENDER_OPTIONS,
            "size_options": catalog.SHOE_SIZES
            if catalog.category_type(product.category) == "shoes"
            else catalog.CLOTHING_SIZES,
            "error": request.query_params.get("error"),
        },
    )


@app.post("/admin/products/{product_id}/edit")
def admin_product_edit_save(
    product_id: str,
    name: str = Form(...),
    description: str = Form(""),
    price: float = Form(...),
    original_price: Optional[float] = Form(None),
    category: str = Form(""),
    brand: str = Form(""),
    gender: str = Form("Unisex"),
    image_urls: str = Form(""),
    sizes: str = Form(""),
    colors: str = Form(""),
    material: str = Form(""),
    featured: Optional[str] = Form(None),
    in_stock: Optional[str] = Form(None),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    current = _product_or_404(store, product_id)
    try:
        product = _form_product(
            name, description, price, original_price, category, brand, gender,
            image_urls, sizes, colors, material, featured, in_stock,
        )
    except ValidationError as e:
        return _redirect(f"/admin/products/{product_id}/edit", _validation_message(e))

    catalog.update_product(store, product_id, _product_changes(current, product))
    return _redirect("/admin/products")


@app.post("/admin/products/{product_id}/delete")
def admin_product_delete(
    product_id: str,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    if not catalog.delete_product(store, product_id):
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return _redirect("/admin/products")


@app.post("/admin/products/import", response_class=HTMLResponse)
async def admin_import_products(
    file: UploadFile = File(...),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    content = (await file.read()).decode("utf-8-sig")
    reader = csv.DictReader(io.StringIO(content))
    imported = 0
    for row in reader:
        name = row.get("name") or row.get("nombre")
        price = row.get("price") or row.get("precio")
        if not name or not price:
            continue
        try:
            price = float(price)
            original_price = float(row["original_price"]) if row.get("original_price") else None
        except ValueError:
            continue
        try:
            product = ProductCreate(
                name=name,
                description=row.get("description") or row.get("descripcion") or "",
                price=price,
                original_price=original_price,
                is_discounted=bool(original_price) and price < original_price,
                category=row.get("category") or row.get("categoria") or "",
                brand=row.get("brand") or "",
                gender=row.get("gender") or "Unisex",
                images=[{"url": url} for url in _split(row.get("image_url"), "|")],
                sizes=_split(row.get("sizes"), "|"),
                colors=_split(row.get("colors"), "|"),
                featured=_truthy(row.get("featured")),
                in_stock=_truthy(row.get("in_stock") or "1"),
            )
        except ValidationError:
            logger.warning("Fila de CSV inválida, se saltea: %s", name)
            continue
        catalog.add_product(store, product)
        imported += 1
    logger.info("Importados %s productos desde CSV", imported)
    return RedirectResponse(
        url=f"/admin/products?imported={imported}", status_code=status.HTTP_303_SEE_OTHER
    )


# -------------------------
# ADMIN HTML: VARIATIONS
# -------------------------
def _save_variations(store: DocumentStore, product_id: str, builder: VariationBuilder) -> None:
    catalog.update_product(store, product_id, builder.product_fields())


@app.post("/admin/products/{product_id}/variations")
def admin_add_variations(
    product_id: str,
    color: str = Form(...),
    sizes: List[str] = Form(...),
    stock_status: Optional[str] = Form(None),
    barcode: str = Form(""),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    product = _product_or_404(store, product_id)
    builder = VariationBuilder.from_product(product)
    result = builder.add_variations(product.name, color.strip(), sizes, bool(stock_status), barcode.strip())
    if result["status"] == "error":
        return _redirect(f"/admin/products/{product_id}/edit", result["error_message"])
    _save_variations(store, product_id, builder)
    return _redirect(f"/admin/products/{product_id}/edit")


@app.post("/admin/products/{product_id}/variations/{variation_id}/delete")
def admin_remove_variation(
    product_id: str,
    variation_id: str,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    builder = VariationBuilder.from_product(_product_or_404(store, product_id))
    builder.remove_variation(variation_id)
    _save_variations(store, product_id, builder)
    return _redirect(f"/admin/products/{product_id}/edit")


@app.post("/admin/products/{product_id}/variations/remove-color")
def admin_remove_color(
    product_id: str,
    color: str = Form(...),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    builder = VariationBuilder.from_product(_product_or_404(store, product_id))
    builder.remove_by_color(color)
    _save_variations(store, product_id, builder)
    return _redirect(f"/admin/products/{product_id}/edit")


# -------------------------
# ADMIN HTML: ORDERS
# -------------------------
@app.get("/admin/orders", response_class=HTMLResponse)
def admin_orders(
    request: Request,
    q_email: Optional[str] = Query(None),
    q_status: Optional[str] = Query(None),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    rows = orders.fetch_all_orders(store)
    if q_email:
        rows = [o for o in rows if o.customer.email.lower() == q_email.strip().lower()]
    if q_status:
        rows = [o for o in rows if o.status == q_status]

    return templates.TemplateResponse(
        "orders.html",
        {
            "request": request,
            "orders": rows,
            "statuses": orders.ORDER_STATUSES,
            "q_email": q_email,
            "q_status": q_status,
        },
    )


@app.get("/admin/orders/{order_id}", response_class=HTMLResponse)
def admin_order_detail(
    order_id: str,
    request: Request,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    order = orders.fetch_order(store, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return templates.TemplateResponse(
        "order_detail.html",
        {
            "request": request,
            "order": order,
            "statuses": orders.ORDER_STATUSES,
            "error": request.query_params.get("error"),
        },
    )


@app.post("/admin/orders/{order_id}/status")
def admin_order_status_save(
    order_id: str,
    order_status: str = Form(..., alias="status"),
    carrier: str = Form(""),
    tracking_number: str = Form(""),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(get_current_admin),
):
    try:
        orders.update_order_status(
            store,
            order_id,
            order_status,
            carrier=carrier.strip() or None,
            tracking_number=tracking_number.strip() or None,
        )
    except ValueError as e:
        return _redirect(f"/admin/orders/{order_id}", str(e))
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return _redirect(f"/admin/orders/{order_id}")


# -------------------------
# API JSON: PRODUCTS
# -------------------------
@app.post("/products", response_model=Product)
def api_create_product(
    product: ProductCreate,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
):
    product_id = catalog.add_product(store, product)
    return _product_or_404(store, product_id)


@app.get("/products", response_model=List[Product])
def api_list_products(store: DocumentStore = Depends(get_store), _: bool = Depends(require_api_key)):
    return catalog.get_all_products(store)


@app.post("/products/seed")
def api_seed_products(
    count: int = Query(50, ge=1, le=500),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
) -> Dict[str, Any]:
    created = catalog.seed_products(store, count)
    if not created:
        return {"status": "skipped", "message": "Ya existen productos."}
    return {"status": "ok", "created": created}


@app.get("/products/{product_id}", response_model=Product)
def api_get_product(
    product_id: str,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
):
    return _product_or_404(store, product_id)


@app.put("/products/{product_id}", response_model=Product)
def api_update_product(
    product_id: str,
    product: ProductCreate,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
):
    current = _product_or_404(store, product_id)
    catalog.update_product(store, product_id, _product_changes(current, product))
    return _product_or_404(store, product_id)


@app.delete("/products/{product_id}")
def api_delete_product(
    product_id: str,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
) -> Dict[str, Any]:
    if not catalog.delete_product(store, product_id):
        raise HTTPException(status_code=404, detail="Producto no encontrado")
    return {"status": "ok"}


@app.post("/products/{product_id}/variations", response_model=Product)
def api_add_variations(
    product_id: str,
    payload: VariationRequest,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
):
    product = _product_or_404(store, product_id)
    builder = VariationBuilder.from_product(product)
    result = builder.add_variations(
        product.name, payload.color, payload.sizes, payload.stock_status, payload.barcode
    )
    if result["status"] == "error":
        raise HTTPException(
            status_code=409,
            detail={"message": result["error_message"], "duplicates": result["duplicates"]},
        )
    _save_variations(store, product_id, builder)
    return _product_or_404(store, product_id)


@app.delete("/products/{product_id}/variations/{variation_id}", response_model=Product)
def api_remove_variation(
    product_id: str,
    variation_id: str,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
):
    builder = VariationBuilder.from_product(_product_or_404(store, product_id))
    builder.remove_variation(variation_id)
    _save_variations(store, product_id, builder)
    return _product_or_404(store, product_id)


# -------------------------
# API JSON: ORDERS
# -------------------------
@app.get("/orders")
def api_list_orders(
    order_status: Optional[str] = Query(None, alias="status"),
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
) -> List[Dict[str, Any]]:
    rows = orders.fetch_all_orders(store)
    if order_status:
        rows = [o for o in rows if o.status == order_status]
    return [o.model_dump(by_alias=True) for o in rows]


@app.get("/orders/{order_id}")
def api_get_order(
    order_id: str,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
) -> Dict[str, Any]:
    order = orders.fetch_order(store, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return order.model_dump(by_alias=True)


@app.post("/orders/{order_id}/status")
def api_update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    store: DocumentStore = Depends(get_store),
    _: bool = Depends(require_api_key),
) -> Dict[str, Any]:
    try:
        orders.update_order_status(
            store, order_id, payload.status, payload.carrier, payload.tracking_number
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except DocumentNotFound:
        raise HTTPException(status_code=404, detail="Orden no encontrada")
    return orders.fetch_order(store, order_id).model_dump(by_alias=True)


@app.get("/stats")
def api_stats(store: DocumentStore = Depends(get_store), _: bool = Depends(require_api_key)) -> Dict[str, Any]:
    stats = orders.dashboard_stats(store)
    stats["recentOrders"] = [o.model_dump(by_alias=True) for o in stats["recentOrders"]]
    return stats
