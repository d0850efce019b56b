"""Response envelope helpers

Every handler builds a fresh dict per request; nothing here holds state.
"""

from typing import Any, Optional

from fastapi import HTTPException


def envelope(data: Any = None, message: str = "", success: bool = True) -> dict:
    return {"success": success, "message": message, "data": data}


def api_error(status_code: int, message: str, code: Optional[str] = None, **extra) -> HTTPException:
    """HTTPException whose detail carries a machine readable error code"""
    detail: dict[str, Any] = {"message": message}
    if code:
        detail["code"] = code
    detail.update(extra)
    return HTTPException(status_code=status_code, detail=detail)


def error_body(detail: Any) -> dict:
    """Render an HTTPException detail as the error envelope"""
    body: dict[str, Any] = {"success": False, "data": None}
    if isinstance(detail, dict):
        body["message"] = detail.get("message", "Request failed")
        if detail.get("code"):
            body["error"] = detail["code"]
        for key, value in detail.items():
            if key not in ("message", "code"):
                body[key] = value
    else:
        body["message"] = str(detail)
    return body
