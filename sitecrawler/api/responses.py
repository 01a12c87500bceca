from typing import Any, Optional
from fastapi import status
from fastapi.responses import JSONResponse


def envelope_response(
    success: bool,
    data: Any = None,
    message: Optional[str] = None,
    error: Optional[str] = None,
    details: Optional[str] = None,
    status_code: int = status.HTTP_200_OK,
) -> JSONResponse:
    """Builds the {success, data?, message?, error?} envelope shared by the crawl entry points."""
    content = {"success": success}
    if data is not None:
        content["data"] = data
    if message is not None:
        content["message"] = message
    if error is not None:
        content["error"] = {"message": error}
        if details is not None:
            content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content)
