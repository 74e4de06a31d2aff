"""
catalog.py
Catálogo de productos: lectura para la tienda, filtros del listado y
ABM para el panel admin.
"""

import logging
import random
import re
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from valmore.documents import DocumentStore, DocumentStoreError
from valmore.schemas import Product, ProductCreate

logger = logging.getLogger(__name__)

PRODUCTS = "products"

# -------------------------
# Constantes de catálogo
# -------------------------
CLOTHING_SIZES = ["XXS", "XS", "S", "M", "L", "XL", "XXL", "XXXL"]
SHOE_SIZES = [str(n) for n in range(36, 50)]

GENDER_OPTIONS = [
    {"value": "Male", "label": "Erkek"},
    {"value": "Female", "label": "Kadın"},
    {"value": "Unisex", "label": "Unisex"},
]

PRODUCT_CATEGORIES = [
    {"value": "Tişörtler", "type": "clothing", "translationKey": "tshirts"},
    {"value": "Gömlekler", "type": "clothing", "translationKey": "shirts"},
    {"value": "Pantolonlar", "type": "clothing", "translationKey": "pants"},
    {"value": "Dış Giyim", "type": "clothing", "translationKey": "outerwear"},
    {"value": "Üst Giyim", "type": "clothing", "translationKey": "tops"},
    {"value": "Sweatshirt", "type": "clothing", "translationKey": "sweatshirts"},
    {"value": "Elbise", "type": "clothing", "translationKey": "dresses"},
    {"value": "Şort", "type": "clothing", "translationKey": "shorts"},
    {"value": "Ayakkabı", "type": "shoes", "translationKey": "shoes"},
    {"value": "Aksesuar", "type": "accessories", "translationKey": "accessories"},
    {"value": "Çanta", "type": "accessories", "translationKey": "bags"},
    {"value": "Çorap", "type": "accessories", "translationKey": "socks"},
]

SORT_OPTIONS = ("newest", "price-low", "price-high")

COLOR_MAP = {
    "siyah": "#000000",
    "beyaz": "#FFFFFF",
    "gri": "#9CA3AF",
    "kırmızı": "#EF4444",
    "mavi": "#3B82F6",
    "lacivert": "#1E3A8A",
    "yeşil": "#22C55E",
    "sarı": "#FACC15",
    "turuncu": "#F97316",
    "mor": "#A855F7",
    "pembe": "#EC4899",
    "kahverengi": "#92400E",
    "bej": "#D4B59F",
    "krem": "#F5F5DC",
    "bordo": "#800020",
    "haki": "#8B864E",
    "pudra": "#FFE4E1",
    "mint": "#98FF98",
    "füme": "#708090",
}
DEFAULT_COLOR_HEX = "#D1D5DB"


def _find_category(category: str) -> Optional[Dict]:
    for c in PRODUCT_CATEGORIES:
        if c["value"] == category:
            return c
    return None


def category_type(category: str) -> str:
    found = _find_category(category)
    return found["type"] if found else "clothing"


def is_size_required(category: str) -> bool:
    return category_type(category) != "accessories"


def color_hex(color_name: str) -> str:
    return COLOR_MAP.get((color_name or "").strip().lower(), DEFAULT_COLOR_HEX)


def generate_slug(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", (text or "").lower())
    return slug.strip("-")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_product(doc: Dict) -> Optional[Product]:
    try:
        return Product.model_validate(doc)
    except ValidationError:
        logger.warning("Producto con formato inválido: %s", doc.get("id"))
        return None


def _to_products(docs: List[Dict]) -> List[Product]:
    return [p for p in (_to_product(d) for d in docs) if p is not None]


# -------------------------
# Lectura (tienda)
# -------------------------
def get_all_products(store: DocumentStore) -> List[Product]:
    """Todos los productos, los más nuevos primero. Si la base falla, lista vacía."""
    try:
        docs = store.query(PRODUCTS, order_by="createdAt", descending=True)
    except DocumentStoreError:
        logger.exception("Error leyendo productos")
        return []
    return _to_products(docs)


def get_product(store: DocumentStore, product_id: str) -> Optional[Product]:
    try:
        doc = store.get(PRODUCTS, product_id)
    except DocumentStoreError:
        logger.exception("Error leyendo producto %s", product_id)
        return None
    if doc is None:
        return None
    doc["id"] = product_id
    return _to_product(doc)


def get_products_by_category(store: DocumentStore, category: str) -> List[Product]:
    try:
        docs = store.query(PRODUCTS, where={"category": category}, order_by="createdAt", descending=True)
    except DocumentStoreError:
        logger.exception("Error leyendo productos de %s", category)
        return []
    return _to_products(docs)


def get_featured_products(store: DocumentStore, limit: int = 8) -> List[Product]:
    try:
        docs = store.query(PRODUCTS, where={"featured": True}, limit=limit)
    except DocumentStoreError:
        logger.exception("Error leyendo productos destacados")
        return []
    return _to_products(docs)


def get_related_products(store: DocumentStore, product_id: str, category: str, limit: int = 4) -> List[Product]:
    related = [p for p in get_products_by_category(store, category) if p.id != product_id]
    return related[:limit]


# -------------------------
# ABM (admin)
# -------------------------
def add_product(store: DocumentStore, product: ProductCreate) -> str:
    doc = product.to_document()
    doc["createdAt"] = _now_iso()
    product_id = store.add(PRODUCTS, doc)
    # El slug lleva el id para que sea único
    store.update(PRODUCTS, product_id, {"slug": generate_slug(f"{product.name}-{product_id[:6]}")})
    return product_id


def update_product(store: DocumentStore, product_id: str, changes: Dict) -> None:
    store.update(PRODUCTS, product_id, changes)


def delete_product(store: DocumentStore, product_id: str) -> bool:
    return store.delete(PRODUCTS, product_id)


# -------------------------
# Filtros del listado
# -------------------------
def _matches_size(product: Product, sizes: Sequence[str]) -> bool:
    if not sizes:
        return True
    if product.has_variants and product.variants:
        in_stock_sizes = [s for v in product.variants if v.in_stock for s in v.sizes]
        return any(s in in_stock_sizes for s in sizes)
    if product.sizes and product.in_stock:
        return any(str(s) in sizes for s in product.sizes)
    return False


def filter_products(
    products: List[Product],
    gender: str = "ALL",
    query: str = "",
    category: str = "all",
    sizes: Sequence[str] = (),
    price_range: Tuple[float, float] = (0, 10000),
    discounted_only: bool = False,
) -> List[Product]:
    q = (query or "").strip().lower()
    result = []
    for p in products:
        # Unisex (o sin género) aparece en todos los filtros de género
        if gender != "ALL" and p.gender not in ("Unisex", gender):
            continue
        if q and q not in p.name.lower() and q not in p.description.lower():
            continue
        if category != "all" and p.category != category:
            cat = _find_category(p.category)
            if not cat or cat["translationKey"] != category:
                continue
        if not _matches_size(p, sizes):
            continue
        if not (price_range[0] <= p.price <= price_range[1]):
            continue
        if discounted_only and not p.is_discounted:
            continue
        result.append(p)
    return result


def sort_products(products: List[Product], sort_by: str = "newest") -> List[Product]:
    if sort_by == "price-low":
        return sorted(products, key=lambda p: p.price)
    if sort_by == "price-high":
        return sorted(products, key=lambda p: p.price, reverse=True)
    if sort_by == "newest":
        return sorted(products, key=lambda p: p.created_at, reverse=True)
    return list(products)


def paginate(products: List, page: int = 1, page_size: int = 12) -> Dict:
    page = max(1, page)
    start = (page - 1) * page_size
    items = products[start:start + page_size]
    return {
        "items": items,
        "total": len(products),
        "page": page,
        "pageSize": page_size,
        "hasMore": start + page_size < len(products),
    }


def calculate_product_price(product: Product) -> Dict:
    """
    `price` es el precio de venta y `originalPrice` el de lista.
    Hay descuento solo si el de venta es menor al de lista.
    """
    original = product.original_price or 0
    discounted = product.price
    has_discount = bool(discounted) and discounted < original
    final = discounted if has_discount else original
    percentage = round((original - discounted) / original * 100) if has_discount else 0
    return {
        "originalPrice": original,
        "discountedPrice": discounted or 0,
        "finalPrice": final,
        "hasDiscount": has_discount,
        "discountPercentage": percentage,
    }


# -------------------------
# Datos de demo
# -------------------------
_SEED_CATEGORIES = [
    ("Tişörtler", "clothing"),
    ("Gömlekler", "clothing"),
    ("Pantolonlar", "clothing"),
    ("Dış Giyim", "clothing"),
    ("Ayakkabı", "shoes"),
    ("Aksesuar", "accessories"),
]
_SEED_BRANDS = ["Nike", "Adidas", "Zara", "H&M", "Valmoré"]
_SEED_ADJECTIVES = ["Premium", "Classic", "Modern", "Vintage", "Urban", "Essential"]
_SEED_NOUNS = ["T-Shirt", "Jeans", "Sneakers", "Hoodie", "Coat", "Bag"]
_SEED_COLORS = ["Siyah", "Beyaz", "Mavi", "Kırmızı", "Yeşil", "Gri", "Lacivert", "Bej"]
_SEED_IMAGES = [
    "https://images.unsplash.com/photo-1521572163474-6864f9cf17ab?w=800&q=80",
    "https://images.unsplash.com/photo-1503341455253-b2e72333dbdb?w=800&q=80",
    "https://images.unsplash.com/photo-1576566588028-4147f3842f27?w=800&q=80",
]


def seed_products(store: DocumentStore, count: int = 50, rng: Optional[random.Random] = None) -> int:
    """Carga productos de demo si la colección está vacía. Devuelve cuántos creó."""
    if store.count(PRODUCTS) > 0:
        return 0
    rng = rng or random.Random()
    for i in range(count):
        category, ctype = rng.choice(_SEED_CATEGORIES)
        name = f"{rng.choice(_SEED_BRANDS)} {rng.choice(_SEED_ADJECTIVES)} {rng.choice(_SEED_NOUNS)}"
        price = rng.randint(300, 2000)
        sizes = CLOTHING_SIZES[1:7]
        if ctype == "shoes":
            sizes = SHOE_SIZES[:10]
        elif ctype == "accessories":
            sizes = ["Standart"]
        store.add(PRODUCTS, {
            "name": name,
            "slug": generate_slug(f"{name}-{i}"),
            "brand": name.split(" ")[0],
            "category": category,
            "description": "Gün boyu konfor sağlayan, premium malzemelerden üretilmiş zamansız bir parça.",
            "price": price,
            "originalPrice": int(price * 1.3),
            "isDiscounted": True,
            "inStock": rng.random() > 0.2,
            "featured": rng.random() > 0.8,
            "colors": rng.sample(_SEED_COLORS, 3),
            "sizes": sizes,
            "images": [{"url": url, "color": "Genel"} for url in rng.sample(_SEED_IMAGES, 2)],
            "createdAt": _now_iso(),
            "gender": rng.choice(["Male", "Female", "Unisex"]),
            "material": "%100 Pamuk",
            "fit": "Regular Fit",
            "hasVariants": False,
            "variants": [],
        })
    return count
