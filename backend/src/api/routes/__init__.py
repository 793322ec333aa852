# API routes
from src.api.routes import webhooks_clerk

__all__ = ["webhooks_clerk"]
