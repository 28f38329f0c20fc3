"""Storefront cart engine: cart state, pricing, validation and persistence."""

__version__ = "1.0.0"
