"""HTTP interface for Pointmarket."""

from pointmarket.api.server import create_app

__all__ = ["create_app"]
