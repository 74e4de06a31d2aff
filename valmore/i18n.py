"""
i18n.py
Textos de la interfaz en turco (por defecto) e inglés.
El idioma elegido se guarda en el almacenamiento local del visitante.
"""

from typing import Dict, Optional

from valmore.guest_storage import LANGUAGE_KEY, GuestStorage

DEFAULT_LANGUAGE = "tr"
LANGUAGES = ("tr", "en")

TRANSLATIONS: Dict[str, Dict] = {
    "tr": {
        "products": {
            "addToCart": "Sepete Ekle",
            "updateCart": "Sepeti Güncelle",
            "cartUpdated": "Sepet Güncellendi",
            "outOfStock": "Stokta Yok",
            "selectSize": "Beden Seçin",
            "selectColor": "Renk Seçin",
            "selectSizeColor": "Beden ve Renk Seçin",
        },
        "cart": {
            "empty": "Sepetiniz boş",
            "shipping": "Kargo",
            "freeShipping": "Ücretsiz",
        },
        "checkout": {
            "firstName": "Ad",
            "lastName": "Soyad",
            "email": "E-posta",
            "phone": "Telefon",
            "address": "Adres",
            "city": "Şehir",
            "state": "İlçe",
            "zipCode": "Posta Kodu",
            "cardNumber": "Kart Numarası",
            "cardName": "Kart Üzerindeki İsim",
            "expiryDate": "Son Kullanma Tarihi",
            "cvc": "CVC",
            "required": "zorunludur",
            "invalidEmail": "Geçerli bir e-posta adresi giriniz",
            "invalidPhone": "Geçerli bir cep telefonu numarası giriniz (5xx xxx xx xx)",
            "invalidCard": "Geçerli bir kart numarası giriniz",
            "invalidExpiry": "Geçerli bir tarih giriniz (AA/YY)",
            "invalidCVC": "Geçerli bir CVC giriniz",
            "emptyCart": "Sepetiniz boş",
            "orderError": "Sipariş oluşturulurken bir hata oluştu. Lütfen tekrar deneyin.",
        },
    },
    "en": {
        "products": {
            "addToCart": "Add to Cart",
            "updateCart": "Update Cart",
            "cartUpdated": "Cart Updated",
            "outOfStock": "Out of Stock",
            "selectSize": "Select Size",
            "selectColor": "Select Color",
            "selectSizeColor": "Select Size and Color",
        },
        "cart": {
            "empty": "Your cart is empty",
            "shipping": "Shipping",
            "freeShipping": "Free",
        },
        "checkout": {
            "firstName": "First Name",
            "lastName": "Last Name",
            "email": "Email",
            "phone": "Phone",
            "address": "Address",
            "city": "City",
            "state": "District",
            "zipCode": "Zip Code",
            "cardNumber": "Card Number",
            "cardName": "Name on Card",
            "expiryDate": "Expiry Date",
            "cvc": "CVC",
            "required": "is required",
            "invalidEmail": "Please enter a valid email address",
            "invalidPhone": "Please enter a valid mobile number (5xx xxx xx xx)",
            "invalidCard": "Please enter a valid card number",
            "invalidExpiry": "Please enter a valid date (MM/YY)",
            "invalidCVC": "Please enter a valid CVC",
            "emptyCart": "Your cart is empty",
            "orderError": "Something went wrong while placing your order. Please try again.",
        },
    },
}


def get_translation(language: str, key: str) -> str:
    node = TRANSLATIONS.get(language) or TRANSLATIONS[DEFAULT_LANGUAGE]
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            return key
        node = node[part]
    return node if isinstance(node, str) else key


class LanguageStore:
    def __init__(self, storage: Optional[GuestStorage] = None):
        self.storage = storage
        self.language = DEFAULT_LANGUAGE
        saved = storage.get_item(LANGUAGE_KEY) if storage else None
        if saved in LANGUAGES:
            self.language = saved

    def set_language(self, language: str) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"Idioma no soportado: {language}")
        self.language = language
        if self.storage:
            self.storage.set_item(LANGUAGE_KEY, language)

    def t(self, key: str) -> str:
        return get_translation(self.language, key)


def format_price(amount: float) -> str:
    """Formato lira turca: ₺1.234,56 (punto de miles, coma decimal)."""
    text = f"{float(amount):,.2f}"
    text = text.replace(",", "X").replace(".", ",").replace("X", ".")
    return f"₺{text}"
