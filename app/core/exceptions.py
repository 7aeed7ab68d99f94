"""
Centralised custom exceptions.
Services raise these directly; core/exception_handlers.py renders every one of them
in the standard {success, status, message, data} envelope.
"""
from fastapi import HTTPException, status


class ValidationException(HTTPException):
    def __init__(self, detail: str = "Invalid request"):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class CredentialsException(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenException(HTTPException):
    def __init__(self, detail: str = "You do not have permission to perform this action"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class InactiveAccountException(ForbiddenException):
    def __init__(self):
        super().__init__("Account is inactive")


class NotMemberException(ForbiddenException):
    def __init__(self):
        super().__init__("You are not a member of this conversation")


class NotFoundException(HTTPException):
    def __init__(self, resource: str = "Resource"):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )


class ConflictException(HTTPException):
    def __init__(self, detail: str = "Resource already exists"):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class DeliveryException(HTTPException):
    """External channel (email) failed. The OTP challenge itself stays valid."""

    def __init__(self, detail: str = "Failed to send OTP email"):
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=detail)


class InternalException(HTTPException):
    def __init__(self, detail: str = "Something went wrong"):
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
