"""API Package.

FastAPI server for the media accruals service.
"""

from api.server import create_app

__all__ = [
    "create_app",
]
