"""Map dispatch errors onto HTTP exceptions."""

from __future__ import annotations

from litestar.exceptions import HTTPException

from fleet_dispatch.errors import DispatchError

_STATUS_BY_CODE = {
    "NOT_FOUND": 404,
    "DEVICE_NOT_FOUND": 404,
    "INVALID_TRANSITION": 409,
    "DUPLICATE_ID": 409,
    "VALIDATION_ERROR": 400,
}


def to_http(error: DispatchError) -> HTTPException:
    """Build the HTTPException for a dispatch error; unknown codes are 500."""
    return HTTPException(
        status_code=_STATUS_BY_CODE.get(error.code, 500),
        detail=str(error),
        extra={"code": error.code},
    )
