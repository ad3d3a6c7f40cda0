# app/routers/_responses.py - shared error envelope

from fastapi.responses import JSONResponse


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})
