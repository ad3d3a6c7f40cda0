# app/utils/exceptions.py - Custom exception classes

from fastapi import HTTPException, status


class ProviderNotConfiguredError(HTTPException):
    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR):
        super().__init__(
            status_code=status_code,
            detail=message,
        )


class ProviderAuthError(HTTPException):
    def __init__(self, provider: str):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid {provider} API key",
        )


class ProviderRequestError(HTTPException):
    def __init__(self, message: str, status_code: int = status.HTTP_422_UNPROCESSABLE_ENTITY):
        super().__init__(
            status_code=status_code,
            detail=message,
        )
