"""Local Yu-Gi-Oh! card search."""

__version__ = "0.3.0"
