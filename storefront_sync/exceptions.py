"""Exception types shared by the sync engine, the order translator and the API layer."""
from typing import Optional


class PrintfulAPIError(Exception):
    """A Printful request failed, either in transport or with an error envelope."""

    def __init__(self, message: str, code: Optional[int] = None, reason: Optional[str] = None,
                 status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.reason = reason or message
        self.status_code = status_code if status_code is not None else code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    def to_dict(self):
        return {'code': self.code, 'reason': self.reason}


class SyncError(Exception):
    """Base class for reconciliation failures."""


class SyncInitializationError(SyncError):
    """The run could not start: missing credentials or an unreachable database."""


class SyncFetchError(SyncError):
    """The remote catalog or the local product list could not be loaded."""


class SyncAlreadyRunningError(SyncError):
    """Another run holds the advisory lock for this operation."""

    def __init__(self, operation: str, owner: Optional[str] = None):
        super().__init__(f"Sync operation '{operation}' is already running" + (f" ({owner})" if owner else ""))
        self.operation = operation
        self.owner = owner


class SyncLogClosedError(SyncError):
    """A sync log in a terminal status was asked to change."""


class OrderTranslationError(Exception):
    """A completed cart could not be turned into a Printful order. No order was created."""

    def __init__(self, message: str, code: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.reason = reason or message

    @classmethod
    def from_api_error(cls, message: str, error: PrintfulAPIError) -> 'OrderTranslationError':
        return cls(f"{message}: {error.reason}", code=error.code, reason=error.reason)

    def to_dict(self):
        return {'error': self.message, 'code': self.code, 'reason': self.reason}


class WebhookAuthError(Exception):
    """The webhook request token was missing or could not be validated."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
