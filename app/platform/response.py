from typing import Any, Dict, Mapping, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def api_response(
    *,
    data: Optional[Any] = None,
    message: str = "Operation successful",
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """
    Envelope used by service endpoints (health, info).
    Automatically sets status = "success" if < 400 else "error"
    """
    status_str = "success" if status_code < 400 else "error"
    data = jsonable_encoder(data) if data is not None else {}

    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "status": status_str,
            "message": message,
            "data": data,
        },
    )


def audit_response(report: Any, *, max_age: int) -> JSONResponse:
    """Bare report body; audit clients read the report shape directly, without the envelope."""
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=jsonable_encoder(report, by_alias=True),
        headers={"Cache-Control": f"public, max-age={max_age}"},
    )


def error_response(
    message: str,
    *,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {"error": message}
    if code:
        content["code"] = code
    if extra:
        content.update(extra)
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(content),
        headers=dict(headers) if headers else None,
    )
