"""
Query helpers.
"""

from .filters import FilterTranslator, translate_filter

__all__ = ["FilterTranslator", "translate_filter"]
