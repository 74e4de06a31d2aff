"""
variations.py
Variaciones de producto como lista plana: cada combinación color-talle es
un registro propio {id, color, size, sku, barcode, stockStatus}.
Lo usa el panel admin mientras arma un producto.
"""

import re
import unicodedata
import uuid
from typing import Dict, Iterable, List, Optional

from valmore.schemas import Product, ProductVariant, Variation

SKU_SEGMENT_LENGTH = 10

_TR_MAP = str.maketrans({
    "ş": "s", "Ş": "S", "ı": "i", "İ": "I", "ğ": "g", "Ğ": "G",
    "ü": "u", "Ü": "U", "ö": "o", "Ö": "O", "ç": "c", "Ç": "C",
})


def _sku_segment(value: str) -> str:
    text = (value or "").translate(_TR_MAP)
    # Resto de acentos latinos: descomponer y tirar las marcas
    text = "".join(
        ch for ch in unicodedata.normalize("NFKD", text)
        if unicodedata.category(ch) != "Mn"
    )
    text = re.sub(r"[^A-Z0-9]", "", text.upper())
    return text[:SKU_SEGMENT_LENGTH]


def generate_sku(product_name: str, color: str, size: str) -> str:
    """
    SKU determinístico: NOMBRE-COLOR-TALLE, cada parte normalizada y
    cortada a 10 caracteres. Nombres largos pueden colisionar.

    >>> generate_sku("Oxford Gömlek", "Kırmızı", "M")
    'OXFORDGOML-KIRMIZI-M'
    """
    return "-".join(_sku_segment(part) for part in (product_name, color, size))


def legacy_variation_id(product_id: str, color: str, size: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"valmore:{product_id}:{color}:{size}"))


class VariationBuilder:
    def __init__(self, initial: Optional[Iterable[Variation]] = None):
        self.variations: List[Variation] = list(initial or [])

    @classmethod
    def from_product(cls, product: Product) -> "VariationBuilder":
        if product.variations:
            return cls(product.variations)
        # Productos viejos: solo tienen variantes agrupadas por color.
        # El id sale de (producto, color, talle) para que sea el mismo en cada request.
        flat = []
        for variant in product.variants:
            for size in variant.sizes:
                flat.append(Variation(
                    id=legacy_variation_id(product.id, variant.color, size),
                    color=variant.color,
                    size=size,
                    sku=variant.sku or generate_sku(product.name, variant.color, size),
                    barcode=variant.barcode or "",
                    stock_status=variant.in_stock,
                ))
        return cls(flat)

    def is_duplicate(self, color: str, size: str) -> bool:
        return any(
            v.color.lower() == color.lower() and v.size.lower() == size.lower()
            for v in self.variations
        )

    def add_variations(
        self,
        product_name: str,
        color: str,
        sizes: List[str],
        stock_status: bool,
        barcode: str = "",
    ) -> Dict:
        """
        Agrega un talle por cada elemento de `sizes` para el color dado.
        Si alguna combinación ya existe no se agrega ninguna.
        """
        duplicates = [size for size in sizes if self.is_duplicate(color, size)]
        if duplicates:
            return {
                "status": "error",
                "error_message": f"Bu kombinasyon zaten mevcut: {color} - {', '.join(duplicates)}",
                "duplicates": [{"color": color, "size": size} for size in duplicates],
            }

        created = [
            Variation(
                id=str(uuid.uuid4()),
                color=color,
                size=size,
                sku=generate_sku(product_name, color, size),
                barcode=barcode,
                stock_status=stock_status,
            )
            for size in sizes
        ]
        self.variations.extend(created)
        return {"status": "success", "variations": created}

    def update_variation(self, variation_id: str, **changes) -> None:
        self.variations = [
            v.model_copy(update=changes) if v.id == variation_id else v
            for v in self.variations
        ]

    def remove_variation(self, variation_id: str) -> None:
        self.variations = [v for v in self.variations if v.id != variation_id]

    def remove_by_color(self, color: str) -> None:
        self.variations = [v for v in self.variations if v.color != color]

    def unique_colors(self) -> List[str]:
        return list(dict.fromkeys(v.color for v in self.variations))

    def unique_sizes(self) -> List[str]:
        return list(dict.fromkeys(v.size for v in self.variations))

    def has_in_stock(self) -> bool:
        return any(v.stock_status for v in self.variations)

    def grouped_by_color(self) -> Dict[str, List[Variation]]:
        groups: Dict[str, List[Variation]] = {}
        for v in self.variations:
            groups.setdefault(v.color, []).append(v)
        return groups

    def reset(self) -> None:
        self.variations = []

    def to_product_variants(self) -> List[ProductVariant]:
        """Agrupa por color en el formato que lee la tienda."""
        variants = []
        for color, items in self.grouped_by_color().items():
            in_stock = [v for v in items if v.stock_status]
            variants.append(ProductVariant(
                color=color,
                sizes=[v.size for v in in_stock] or [v.size for v in items],
                in_stock=bool(in_stock),
                sku=items[0].sku,
                barcode=next((v.barcode for v in items if v.barcode), None),
            ))
        return variants

    def product_fields(self) -> Dict:
        """Campos derivados que se guardan en el producto junto a las variaciones."""
        return {
            "hasVariants": bool(self.variations),
            "variations": [v.model_dump(by_alias=True) for v in self.variations],
            "variants": [v.model_dump(by_alias=True) for v in self.to_product_variants()],
            "colors": self.unique_colors(),
            "sizes": self.unique_sizes(),
            "inStock": self.has_in_stock(),
        }
