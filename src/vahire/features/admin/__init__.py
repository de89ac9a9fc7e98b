"""Admin feature endpoints."""

from src.vahire.features.admin.handlers import router

__all__ = ["router"]
