"""
Admin module: role and user permission administration over HTTP.

All routes require an authenticated actor; every mutation is decided by the
authorization engine in ``app.auth`` and audited.
"""
from .router import router

__all__ = ["router"]
