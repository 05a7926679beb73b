"""Error taxonomy shared by the stores, the session service and the API.

Learn: Every error carries the dotted name of the operation that raised it
(``storage.users.create``, ``services.session.refresh_token_pair``) so a log
line or a traceback says where things went wrong without a stack walk.
The API layer maps each class to one HTTP status; see api/auth.py.
"""


class AuthServiceError(Exception):
    """Base class for all jwt-auth errors."""

    def __init__(self, op: str, message: str):
        super().__init__(f"{op}: {message}")
        self.op = op
        self.message = message


class ValidationFailureError(AuthServiceError):
    """Input was malformed before it reached the service."""


class DuplicateIdentityError(AuthServiceError):
    """An identity with this email already exists."""


class NotFoundError(AuthServiceError):
    """The identity, or its current refresh generation, does not exist."""


class UnauthorizedError(AuthServiceError):
    """A presented credential was rejected.

    The message is always the same: callers must not learn whether the
    signature, the expiry or the refresh generation was at fault.
    """

    def __init__(self, op: str):
        super().__init__(op, "unauthorized")


class CredentialError(AuthServiceError):
    """A token could not be signed (bad algorithm or key configuration)."""


class StorageError(AuthServiceError):
    """A database call failed for a reason not covered above."""


class OperationTimeoutError(StorageError):
    """An operation ran past its deadline and its transaction was rolled back."""
