"""Bundled anchor providers."""
from .civil import CivilProvider

__all__ = ["CivilProvider"]
