"""
CashGame Server - FastAPI HTTP Server Layer
"""

from cashgame.server.app import app, create_app

__all__ = ["app", "create_app"]
