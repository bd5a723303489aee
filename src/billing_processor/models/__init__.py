"""Domain models for the Billing Processor Service."""

from billing_processor.models.exceptions import (
    AmbiguousSubscriptionError,
    ConcurrentModificationError,
    ConflictError,
    CorruptProcessorDataError,
    IdentityLookupError,
    InvalidEmailError,
    InvalidProcessorNameError,
    MissingEmailError,
    NoDefaultProcessorError,
    NotFoundError,
    PartialFailureError,
    PersistenceError,
    ProcessorDataError,
    ProcessorError,
    ProcessorNotRegisteredError,
    ProcessorValidationError,
    ProviderAlreadyExistsError,
    RemoteError,
    RemoteInternalError,
    RemoteRejectedError,
    UnsupportedProviderError,
    ValidationError,
    WrongPlanError,
)
from billing_processor.models.processor import (
    ALL_SELECTOR,
    DEFAULT_SELECTOR,
    Confirmation,
    MethodSummary,
    ProcessorAggregate,
    ProviderName,
    ProviderRecord,
    RegistrationRequest,
    StorageShape,
)
from billing_processor.models.user import User

__all__ = [
    "ALL_SELECTOR",
    "DEFAULT_SELECTOR",
    "AmbiguousSubscriptionError",
    "ConcurrentModificationError",
    "Confirmation",
    "ConflictError",
    "CorruptProcessorDataError",
    "IdentityLookupError",
    "InvalidEmailError",
    "InvalidProcessorNameError",
    "MethodSummary",
    "MissingEmailError",
    "NoDefaultProcessorError",
    "NotFoundError",
    "PartialFailureError",
    "PersistenceError",
    "ProcessorAggregate",
    "ProcessorDataError",
    "ProcessorError",
    "ProcessorNotRegisteredError",
    "ProcessorValidationError",
    "ProviderAlreadyExistsError",
    "ProviderName",
    "ProviderRecord",
    "RegistrationRequest",
    "RemoteError",
    "RemoteInternalError",
    "RemoteRejectedError",
    "StorageShape",
    "UnsupportedProviderError",
    "User",
    "ValidationError",
    "WrongPlanError",
]
