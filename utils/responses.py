from typing import Any, Optional

from fastapi.responses import JSONResponse


def success_response(data: Any = None, message: Optional[str] = None, status: int = 200) -> JSONResponse:
    content = {
        "success": True,
        "data": data,
    }
    if message is not None:
        content["message"] = message
    return JSONResponse(status_code=status, content=content)


def error_response(error_code: str, status: int = 400, message: str = "An error occurred") -> JSONResponse:
    return JSONResponse(
        status_code=status,
        content={
            "success": False,
            "error": {
                "code": error_code,
                "message": message,
            },
        },
    )
