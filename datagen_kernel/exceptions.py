"""
Typed Exception Hierarchy for the Generation Engine.

Every error raised by the engine is a ``DatagenError`` subclass carrying a
machine-readable ``code`` class attribute and structured attributes, so
callers catch by type and log by field instead of parsing messages:

    try:
        controller.start()
    except EmptyDirectoryError as e:
        ui.show_error(code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    DatagenError (base)
    |
    +-- EngineError
    |   +-- EmptyDirectoryError
    |   +-- InvalidTransitionError
    |   +-- OverwriteLockedError
    |   +-- ManualRunWhileActiveError
    |   +-- NoManualResultError
    |
    +-- DirectoryError
    |   +-- CustomerNotFoundError
    |
    +-- GenerationError
    |   +-- GenerationTimeoutError
    |   +-- GenerationRateLimitedError
    |   +-- GenerationQuotaExceededError
    |   +-- GenerationUpstreamError
    |   +-- MalformedGenerationResponseError
    |
    +-- CheckpointError
        +-- CheckpointCorruptError
"""


class DatagenError(Exception):
    """
    Base exception for all generation engine errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "DATAGEN_ERROR"


# Engine / job controller


class EngineError(DatagenError):
    """Base exception for job controller errors."""

    code: str = "ENGINE_ERROR"


class EmptyDirectoryError(EngineError):
    """The customer directory returned no customers; start is refused."""

    code: str = "EMPTY_DIRECTORY"

    def __init__(self, period: str):
        self.period = period
        super().__init__(f"No customers to process for period {period}")


class InvalidTransitionError(EngineError):
    """A command was issued in a state that does not accept it."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, command: str, state: str):
        self.command = command
        self.state = state
        super().__init__(f"Cannot {command} while engine is {state}")


class OverwriteLockedError(EngineError):
    """The overwrite flag cannot change while a run is executing."""

    code: str = "OVERWRITE_LOCKED"

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Cannot change overwrite setting while engine is {state}")


class ManualRunWhileActiveError(EngineError):
    """Manual invocation is not allowed while the queue is running."""

    code: str = "MANUAL_RUN_WHILE_ACTIVE"

    def __init__(self, customer_id: str, state: str):
        self.customer_id = customer_id
        self.state = state
        super().__init__(
            f"Cannot run customer {customer_id} manually while engine is {state}"
        )


class NoManualResultError(EngineError):
    """save_one() was called with no generated manual result to save."""

    code: str = "NO_MANUAL_RESULT"

    def __init__(self, customer_id: str | None = None):
        self.customer_id = customer_id
        if customer_id is None:
            super().__init__("No manual result to save")
        else:
            super().__init__(f"Manual result for customer {customer_id} has no dataset")


# Customer directory


class DirectoryError(DatagenError):
    """Base exception for customer directory errors."""

    code: str = "DIRECTORY_ERROR"


class CustomerNotFoundError(DirectoryError):
    """Customer id is not present in the directory."""

    code: str = "CUSTOMER_NOT_FOUND"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Customer not found: {customer_id}")


# Generation service


class GenerationError(DatagenError):
    """Base exception for a failed call to the generation service."""

    code: str = "GENERATION_ERROR"

    def __init__(self, customer_id: str, message: str):
        self.customer_id = customer_id
        super().__init__(message)


class GenerationTimeoutError(GenerationError):
    """The generation service did not answer within the timeout."""

    code: str = "GENERATION_TIMEOUT"

    def __init__(self, customer_id: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            customer_id,
            f"Generation for {customer_id} timed out after {timeout_seconds}s",
        )


class GenerationRateLimitedError(GenerationError):
    """The generation service rejected the call with HTTP 429."""

    code: str = "GENERATION_RATE_LIMITED"

    def __init__(self, customer_id: str):
        super().__init__(customer_id, "Rate limited, please try again later")


class GenerationQuotaExceededError(GenerationError):
    """The generation service rejected the call with HTTP 402."""

    code: str = "GENERATION_QUOTA_EXCEEDED"

    def __init__(self, customer_id: str):
        super().__init__(customer_id, "Generation credits exhausted")


class GenerationUpstreamError(GenerationError):
    """The generation service failed (non-2xx status or transport error)."""

    code: str = "GENERATION_UPSTREAM_ERROR"

    def __init__(
        self,
        customer_id: str,
        detail: str,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        self.detail = detail
        if status_code is None:
            message = f"Generation service unreachable: {detail}"
        else:
            message = f"Generation service error {status_code}: {detail}"
        super().__init__(customer_id, message)


class MalformedGenerationResponseError(GenerationError):
    """The generation service answered with an unparseable payload."""

    code: str = "MALFORMED_GENERATION_RESPONSE"

    def __init__(self, customer_id: str, reason: str):
        self.reason = reason
        super().__init__(customer_id, f"Invalid generation response: {reason}")


# Checkpoint storage


class CheckpointError(DatagenError):
    """Base exception for checkpoint read/write errors."""

    code: str = "CHECKPOINT_ERROR"


class CheckpointCorruptError(CheckpointError):
    """The stored checkpoint could not be decoded."""

    code: str = "CHECKPOINT_CORRUPT"

    def __init__(self, location: str, reason: str):
        self.location = location
        self.reason = reason
        super().__init__(f"Checkpoint at {location} is unreadable: {reason}")
