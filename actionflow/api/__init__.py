"""
API package - FastAPI routes and schemas.
"""

from actionflow.api.routes import flows

__all__ = ["flows"]
