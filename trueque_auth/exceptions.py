"""
Auth service — domain-specific HTTP exceptions.

All exceptions use preset status codes and detail messages so that callers
never need to specify these at the call site.  Services raise them directly;
FastAPI renders them as ``{"detail": "..."}`` with the preset status.

The six base classes form the error taxonomy (400 / 409 / 401 / 404 / 429 /
500); concrete subclasses pin the user-visible message.
"""
from fastapi import HTTPException, status


# ── Taxonomy ──────────────────────────────────────────────────────────────────

class ValidationError(HTTPException):
    def __init__(self, detail: str = "Invalid request data.") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str = "Resource already exists.") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class Unauthorized(HTTPException):
    def __init__(self, detail: str = "Not authenticated.") -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found.") -> None:
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class RateLimitError(HTTPException):
    def __init__(self, detail: str, retry_after: int | None = None) -> None:
        headers = {"Retry-After": str(retry_after)} if retry_after else None
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=detail,
            headers=headers,
        )


class DeliveryError(HTTPException):
    """The notification gateway could not hand the code to any provider."""

    def __init__(self, detail: str = "Could not deliver the verification code. Please try again.") -> None:
        super().__init__(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


class Forbidden(HTTPException):
    def __init__(self, detail: str = "Forbidden.") -> None:
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


# ── Validation ────────────────────────────────────────────────────────────────

class MissingIdentifier(ValidationError):
    def __init__(self, channel: str | None = None) -> None:
        if channel == "email":
            super().__init__("Email is required for email delivery.")
        elif channel == "phone":
            super().__init__("Phone number is required for SMS delivery.")
        else:
            super().__init__("Email or phone number is required.")


class NothingToUpdate(ValidationError):
    def __init__(self) -> None:
        super().__init__("No fields to update.")


class InvalidOTP(ValidationError):
    """Single message for wrong, expired and already-used codes."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class PasswordRequired(ValidationError):
    def __init__(self) -> None:
        super().__init__("Password is required for this account.")


class IncorrectPassword(ValidationError):
    def __init__(self) -> None:
        super().__init__("Current password is incorrect.")


# ── Conflict ──────────────────────────────────────────────────────────────────

class UserAlreadyExists(ConflictError):
    def __init__(self) -> None:
        super().__init__("A user with this email or phone number already exists.")


class PhoneAlreadyExists(ConflictError):
    def __init__(self) -> None:
        super().__init__("A user with this phone number already exists.")


# ── Authentication ────────────────────────────────────────────────────────────

class InvalidCredentials(Unauthorized):
    def __init__(self) -> None:
        super().__init__("Invalid credentials.")


class NotAuthenticated(Unauthorized):
    def __init__(self) -> None:
        super().__init__("Invalid or expired session.")


# ── Lookup ────────────────────────────────────────────────────────────────────

class UserNotFound(NotFoundError):
    def __init__(self) -> None:
        super().__init__("No account exists with this email or phone number.")


# ── OTP cooldown ──────────────────────────────────────────────────────────────

class OTPCooldownActive(RateLimitError):
    def __init__(self, message: str, remaining_seconds: int) -> None:
        super().__init__(message, retry_after=remaining_seconds)
        self.remaining_seconds = remaining_seconds


# ── Environment guard ─────────────────────────────────────────────────────────

class DevelopmentOnly(Forbidden):
    def __init__(self) -> None:
        super().__init__("This endpoint is only available in development.")
