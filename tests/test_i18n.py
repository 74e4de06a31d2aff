"""Tests for translations and price formatting."""

import pytest

from valmore.guest_storage import LANGUAGE_KEY
from valmore.i18n import LanguageStore, format_price, get_translation


class TestTranslations:
    def test_default_language_is_turkish(self, storage):
        assert LanguageStore(storage).t("products.addToCart") == "Sepete Ekle"

    def test_missing_key_falls_back_to_key(self, storage):
        assert LanguageStore(storage).t("products.nope") == "products.nope"
        assert get_translation("en", "products") == "products"

    def test_language_is_persisted_and_restored(self, storage):
        """Should save the choice and pick it up in a new store."""
        LanguageStore(storage).set_language("en")
        assert storage.get_item(LANGUAGE_KEY) == "en"
        assert LanguageStore(storage).t("products.addToCart") == "Add to Cart"

    def test_unknown_language_rejected(self, storage):
        with pytest.raises(ValueError):
            LanguageStore(storage).set_language("de")

    def test_ignores_unknown_saved_language(self, storage):
        storage.set_item(LANGUAGE_KEY, "xx")
        assert LanguageStore(storage).language == "tr"


class TestFormatPrice:
    @pytest.mark.parametrize(
        "amount,expected",
        [
            (1234.56, "₺1.234,56"),
            (0, "₺0,00"),
            (1000000, "₺1.000.000,00"),
            (99.9, "₺99,90"),
        ],
    )
    def test_turkish_lira_format(self, amount, expected):
        assert format_price(amount) == expected
