"""Shared utility functions for opo_registry package."""

from opo_registry.utils.parsing import (
    coerce_number,
    coerce_text,
    format_percentage,
    is_blank,
    round_half_up,
)

__all__ = [
    "coerce_number",
    "coerce_text",
    "format_percentage",
    "is_blank",
    "round_half_up",
]
