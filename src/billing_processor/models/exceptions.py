"""Custom exceptions for the Billing Processor Service.

Every exception carries an HTTP-equivalent ``status_code`` so the calling
service layer can surface it without re-classifying.
"""


class ProcessorError(Exception):
    """Base exception for payment processor errors."""

    status_code: int = 500


# ---------------------------------------------------------------------------
# Validation errors (user-caused, 4xx)
# ---------------------------------------------------------------------------


class ValidationError(ProcessorError):
    """Bad input shape. Always user-caused."""

    status_code = 400


class MissingEmailError(ValidationError):
    """Raised when the owner is unknown or has no email on file."""

    pass


class InvalidEmailError(ValidationError):
    """Raised when the owner's email fails the email shape check."""

    pass


class InvalidProcessorNameError(ValidationError):
    """Raised for a processor name that cannot be resolved for the owner."""

    pass


class UnsupportedProviderError(InvalidProcessorNameError):
    """Raised when a provider name is outside the supported enumeration."""

    pass


class ProcessorNotRegisteredError(InvalidProcessorNameError):
    """Raised when the owner's slot for a provider is empty."""

    pass


# ---------------------------------------------------------------------------
# Conflict errors (4xx)
# ---------------------------------------------------------------------------


class ConflictError(ProcessorError):
    """The request conflicts with the owner's current processor state."""

    status_code = 409


class ProviderAlreadyExistsError(ConflictError):
    """Raised when registering a provider whose slot is already populated."""

    pass


class NoDefaultProcessorError(ConflictError):
    """Raised when the default processor is requested but none is set."""

    pass


class ConcurrentModificationError(ConflictError):
    """
    Raised when the stored aggregate changed between read and write.

    The optimistic revision check failed; the caller should re-read the
    current state before deciding whether to try again.
    """

    pass


# ---------------------------------------------------------------------------
# Stored data errors
# ---------------------------------------------------------------------------


class ProcessorDataError(ProcessorError):
    """Base for structurally invalid provider data."""

    status_code = 422


class ProcessorValidationError(ProcessorDataError):
    """Raised by the validation gate when a candidate record is rejected."""

    pass


class AmbiguousSubscriptionError(ProcessorDataError):
    """
    Raised when a customer has more than one live subscription.

    This is a data corruption signal and never expected in normal operation.
    """

    pass


class WrongPlanError(ProcessorDataError):
    """Raised when the customer's subscription is on an unexpected plan."""

    pass


class CorruptProcessorDataError(ProcessorDataError):
    """Raised when a stored slot is not a single wrapped record."""

    pass


# ---------------------------------------------------------------------------
# Remote gateway errors
# ---------------------------------------------------------------------------


class RemoteError(ProcessorError):
    """Base for errors reported by a remote payment gateway."""

    status_code = 502

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message)
        self.provider = provider


class NotFoundError(RemoteError):
    """
    Raised when the gateway reports the remote entity does not exist.

    This is a TERMINAL, user-visible error (404-class).
    """

    status_code = 404


class RemoteRejectedError(RemoteError):
    """
    Raised when the gateway rejects the request payload.

    Examples:
    - Invalid or already-used card token
    - Card declined while attaching a source
    """

    status_code = 402


class RemoteInternalError(RemoteError):
    """
    Raised for any other gateway failure (5xx, network, rate limit).

    Logged for operator follow-up.
    """

    status_code = 502


# ---------------------------------------------------------------------------
# Persistence errors (5xx)
# ---------------------------------------------------------------------------


class PersistenceError(ProcessorError):
    """Raised when the processor record cannot be stored.

    No partial state is visible after this error.
    """

    status_code = 500
    requires_reconciliation: bool = False


class PartialFailureError(PersistenceError):
    """
    Raised when the remote gateway was mutated but the local commit failed.

    Remote and local state now disagree. This is flagged for manual
    reconciliation and is never retried automatically.
    """

    requires_reconciliation = True

    def __init__(
        self,
        message: str,
        owner: str | None = None,
        provider: str | None = None,
        remote_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.owner = owner
        self.provider = provider
        self.remote_id = remote_id


class IdentityLookupError(ProcessorError):
    """Raised when the user service cannot be reached or misbehaves."""

    status_code = 503
