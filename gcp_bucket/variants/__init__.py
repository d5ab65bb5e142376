"""Variant expansion: logical file + resize specs -> physical files."""

from .expander import VariantExpander, derive_variant_name

__all__ = ["VariantExpander", "derive_variant_name"]
