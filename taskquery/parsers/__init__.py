"""Deterministic query parsers."""

from . import fast_path
from .types import PropertyMatch

__all__ = ["PropertyMatch", "fast_path"]
