"""Valmoré: tienda online con carrito persistente y panel admin."""
