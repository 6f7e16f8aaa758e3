# src/__init__.py — v1
"""pinhandoff — two-phase build/upload coordination for paid content publishing."""

from pinhandoff.version import __version__

__all__ = ["__version__"]
