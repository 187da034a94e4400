# =============================================================================
# core/errors.py  -  Error Taxonomy
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Defines every exception the operations can raise.
#
#     UnknownCollection  -> logical name missing from the registry.
#                           Raised before any store call is issued.
#     StoreError         -> any failed remote call (network, auth, rate
#                           limit, validation rejection).  Never retried here.
#     MalformedResult    -> a store response without the expected shape.
#                           Only raised inside display-name derivation and
#                           caught right there (placeholder fallback).
#     ConfigError        -> startup-fatal configuration problem.
#
# NO ROLLBACK:
#   None of these trigger compensating actions.  If a later step of an
#   operation fails, mutations already committed to the store stay as they
#   are and the caller may re-invoke.
# =============================================================================

from typing import Optional


class RealEstateOpsError(Exception):
    """Base class for all errors raised by the operations."""


class ConfigError(RealEstateOpsError):
    """Missing or malformed configuration at startup."""


class UnknownCollection(RealEstateOpsError):
    """The requested logical collection name is not configured."""

    def __init__(self, name: str, known: tuple[str, ...] = ()):
        self.name = name
        self.known = known
        message = f"DB no configurada: {name}"
        if known:
            message += f" (configured: {', '.join(known)})"
        super().__init__(message)


class StoreError(RealEstateOpsError):
    """A remote call to the document store failed.

    Carries whatever the store told us: the HTTP status, and the store's own
    error ``code``/``message`` when the response body had them.
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
    ):
        self.status = status
        self.code = code
        super().__init__(message)


class MalformedResult(RealEstateOpsError):
    """A store response is missing a field we expected to read."""
