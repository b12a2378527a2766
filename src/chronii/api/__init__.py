"""
HTTP surface of the Chronii backend.

create_app() builds a FastAPI application around an AppContext; the
module-level ``app`` in ``chronii.api.main`` is configured from the
environment.
"""

from .main import create_app

__all__ = ["create_app"]
