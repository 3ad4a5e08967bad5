"""Error taxonomy shared by services and routers.

Services raise these; ``vaultx.main`` turns them into JSON responses with the
matching status code.
"""
from typing import Dict, Optional


class ServiceError(Exception):
    status_code = 500
    default_detail = "Internal server error"

    def __init__(self, detail: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.detail = detail or self.default_detail
        self.headers = headers
        super().__init__(self.detail)


class InvalidInput(ServiceError):
    status_code = 400
    default_detail = "Invalid request"


class Unauthorized(ServiceError):
    status_code = 401
    default_detail = "Could not validate credentials"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(ServiceError):
    status_code = 403
    default_detail = "Profile not found or access denied"


class NotFound(ServiceError):
    status_code = 404
    default_detail = "Not found"


class Conflict(ServiceError):
    status_code = 409
    default_detail = "Conflict"


class InternalError(ServiceError):
    pass
