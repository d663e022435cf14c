from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    DUPLICATE_IDENTITY = "duplicate_identity"
    INVALID_CREDENTIALS = "invalid_credentials"
    ON_COOLDOWN = "on_cooldown"
    INTERNAL = "internal"


class LedgerServiceError(Exception):
    kind = ErrorKind.INTERNAL
    code = "server_error"
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind.value, "code": self.code}


class UnauthenticatedError(LedgerServiceError):
    kind = ErrorKind.UNAUTHENTICATED
    code = "missing_token"
    status_code = 401
    default_message = "Authentication required"


class ForbiddenError(LedgerServiceError):
    kind = ErrorKind.FORBIDDEN
    code = "invalid_token"
    status_code = 403
    default_message = "Invalid or expired token"


class AccountNotFoundError(LedgerServiceError):
    kind = ErrorKind.NOT_FOUND
    code = "user_not_found"
    status_code = 404
    default_message = "User not found"


class ValidationError(LedgerServiceError):
    kind = ErrorKind.VALIDATION
    code = "invalid_request"
    status_code = 400
    default_message = "Invalid request"


class UnknownMethodError(ValidationError):
    code = "unknown_method"
    default_message = "Invalid earning method"


class InvalidAmountError(ValidationError):
    code = "invalid_amount"
    default_message = "Invalid amount"


class InvalidAddressError(ValidationError):
    code = "invalid_address"
    default_message = "Invalid wallet address"


class InsufficientBalanceError(LedgerServiceError):
    kind = ErrorKind.INSUFFICIENT_BALANCE
    code = "insufficient_balance"
    status_code = 400
    default_message = "Insufficient balance"


class DuplicateIdentityError(LedgerServiceError):
    kind = ErrorKind.DUPLICATE_IDENTITY
    code = "user_exists"
    status_code = 400
    default_message = "User already exists"


class InvalidCredentialsError(LedgerServiceError):
    kind = ErrorKind.INVALID_CREDENTIALS
    code = "invalid_credentials"
    status_code = 400
    default_message = "Invalid credentials"


class OnCooldownError(LedgerServiceError):
    kind = ErrorKind.ON_COOLDOWN
    code = "on_cooldown"
    status_code = 429
    default_message = "Earning method is on cooldown"

    def __init__(self, message: Optional[str] = None, retry_after: float = 0.0):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["retry_after"] = round(self.retry_after, 3)
        return data


class InternalError(LedgerServiceError):
    pass
