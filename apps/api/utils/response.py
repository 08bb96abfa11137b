"""Response envelope helpers"""
from typing import Any
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi import status


def success_response(data: Any = None, message: str = "Success", status_code: int = status.HTTP_200_OK) -> JSONResponse:
    """Wrap a payload in the standard success envelope"""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": True,
            "data": jsonable_encoder(data),
            "message": message,
        },
    )


def error_response(message: str, status_code: int, code: str, details: Any = None) -> JSONResponse:
    """Build the standard error envelope"""
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = jsonable_encoder(details)
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error},
    )
