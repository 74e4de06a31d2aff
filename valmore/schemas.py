"""
schemas.py
Modelos Pydantic de la tienda. Los documentos se guardan en camelCase
(productId, selectedSize, ...) así que todos los modelos usan alias.
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

Gender = Literal["Male", "Female", "Unisex"]
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled", "returned"]
PaymentMethod = Literal["credit_card", "iyzico", "stripe"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        # El id vive en la clave del documento, no en el JSON
        return self.model_dump(by_alias=True, exclude={"id"})


# -------------------------
# Carrito
# -------------------------
class CartLine(CamelModel):
    product_id: str
    name: str
    price: float = Field(..., ge=0, description="Precio al momento de agregar")
    image: str = ""
    selected_size: str
    selected_color: str
    quantity: int = Field(1, ge=1)
    barcode: Optional[str] = None
    updated_at: int = Field(0, description="Epoch en ms, solo para ordenar")


# -------------------------
# Productos
# -------------------------
class ProductImage(CamelModel):
    url: str
    color: str = "Genel"


class ProductVariant(CamelModel):
    color: str
    sizes: List[str] = Field(default_factory=list)
    in_stock: bool = True
    sku: Optional[str] = None
    barcode: Optional[str] = None


class Variation(CamelModel):
    id: str
    color: str
    size: str
    sku: str
    barcode: str = ""
    stock_status: bool = True


class ProductData(CamelModel):
    name: str
    description: str = ""
    price: float = 0
    original_price: Optional[float] = None
    is_discounted: bool = False
    images: List[ProductImage] = Field(default_factory=list)
    category: str = ""
    brand: str = ""
    gender: Gender = "Unisex"
    material: Optional[str] = None
    fit: Optional[str] = None
    care_instructions: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    sizes: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    in_stock: bool = True
    featured: bool = False
    has_variants: bool = False
    variants: List[ProductVariant] = Field(default_factory=list)
    variations: List[Variation] = Field(default_factory=list)
    slug: str = ""
    created_at: str = ""


class Product(ProductData):
    id: str


class ProductCreate(ProductData):
    """Validación del formulario de producto del panel admin."""

    name: str = Field(..., min_length=2)
    description: str = Field(..., min_length=10)
    price: float = Field(..., gt=0)
    category: str = Field(..., min_length=1)
    images: List[ProductImage] = Field(..., min_length=1)


# -------------------------
# Usuarios
# -------------------------
class Address(CamelModel):
    id: Optional[str] = None
    title: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=2)
    phone: str = ""
    city: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    full_address: str = Field(..., min_length=10)
    zip_code: Optional[str] = None


class ProfileUpdate(CamelModel):
    full_name: Optional[str] = Field(None, min_length=2)
    phone: Optional[str] = None


# -------------------------
# Órdenes
# -------------------------
class Customer(CamelModel):
    full_name: str = Field(..., min_length=2)
    email: EmailStr
    phone: str = Field(..., min_length=10)


class OrderItem(CamelModel):
    product_id: str
    name: str
    price: float
    quantity: int = Field(..., gt=0)
    image: str = ""
    selected_size: str = ""
    selected_color: str = ""


class ShippingAddress(CamelModel):
    title: str = "Teslimat Adresi"
    full_name: str
    address: str = Field(..., min_length=5)
    city: str = Field(..., min_length=1)
    district: str = Field(..., min_length=1)
    zip_code: str = ""
    country: str = "Türkiye"


class Order(CamelModel):
    id: Optional[str] = None
    order_number: str = ""
    user_id: Optional[str] = None
    customer: Customer
    items: List[OrderItem] = Field(..., min_length=1)
    subtotal: float
    shipping_cost: float
    discount_total: float = 0
    total: float
    currency: str = "TRY"
    payment_method: PaymentMethod = "credit_card"
    payment_id: Optional[str] = None
    status: OrderStatus = "pending"
    shipping_address: ShippingAddress
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""
