"""Validated input schemas."""

from .bundle import MAX_FIGURES, Figure, InputBundle

__all__ = ["Figure", "InputBundle", "MAX_FIGURES"]
