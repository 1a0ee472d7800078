"""Exception hierarchy for the cadastro API."""

from typing import Any, Dict, Optional


class CadastroError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)


# ----- Request errors -----


class ValidationError(CadastroError):
    """Missing, unknown or empty request field."""


class NotFoundError(CadastroError):
    """No row matched the identifier."""


class ConflictError(CadastroError):
    """Uniqueness constraint violated."""


# ----- Authentication errors -----


class UnauthenticatedError(CadastroError):
    """No bearer token was presented."""


class InvalidCredentialsError(CadastroError):
    """Email unknown or secret wrong. The two cases are never distinguished."""


class TokenInvalidError(CadastroError):
    """Token is malformed, tampered with, signed with another secret or expired."""


# ----- Storage errors -----


class StorageError(CadastroError):
    """Failure reported by the database."""

    def __init__(self, message: str, unique_violation: bool = False, code: Optional[str] = None) -> None:
        super().__init__(message, details={"code": code} if code else None)
        self.unique_violation = unique_violation
        self.code = code
