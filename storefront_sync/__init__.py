"""Printful catalog sync and Snipcart order handling for the storefront back end."""

__version__ = "0.1.0"
