"""Pointmarket: points-based yes/no wagering market."""

__version__ = "0.1.0"
__author__ = "Pointmarket Team"

__all__ = ["__version__", "__author__"]
