"""Auth feature endpoints."""

from src.vahire.features.auth.handlers import router

__all__ = ["router"]
