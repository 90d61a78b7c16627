"""
HTTP error taxonomy shared by all domains.

Every error is an HTTPException so FastAPI's default handler renders it;
routers and services simply raise.
"""

from typing import Optional

from fastapi import HTTPException


class AuthenticationError(HTTPException):
    """Missing, malformed or expired bearer token"""

    def __init__(self, detail: str = "Authentication failed", headers: Optional[dict] = None):
        merged = {"WWW-Authenticate": "Bearer"}
        if headers:
            merged.update(headers)
        super().__init__(status_code=401, detail=detail, headers=merged)


class AuthorizationError(HTTPException):
    """Valid token, insufficient role"""

    def __init__(self, detail: str = "Insufficient permissions"):
        super().__init__(status_code=403, detail=detail)


class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=400, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=404, detail=detail)


class StoreUnavailableError(HTTPException):
    """The document store could not be reached or timed out"""

    def __init__(self, detail: str = "Database connection error"):
        super().__init__(status_code=503, detail=detail)
