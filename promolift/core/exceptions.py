"""
Custom exceptions for PROMOLIFT.

All exceptions inherit from PromoliftError for easy catching.
Every error carries the failing stage and the baseline/promotion identity
so a failure can be diagnosed from the log line alone.
"""


class PromoliftError(Exception):
    """Base exception for all PROMOLIFT errors."""

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        baseline_id: str | None = None,
        promotion_id: str | None = None,
    ):
        super().__init__(message)
        self.stage = stage
        self.baseline_id = baseline_id
        self.promotion_id = promotion_id

    def _context(self) -> list[str]:
        parts = []
        if self.stage:
            parts.append(f"stage={self.stage}")
        if self.baseline_id:
            parts.append(f"baseline={self.baseline_id}")
        if self.promotion_id:
            parts.append(f"promotion={self.promotion_id}")
        return parts

    def __str__(self) -> str:
        return " | ".join([self.args[0], *self._context()])


class ConfigurationError(PromoliftError):
    """Raised when configuration is invalid or missing."""

    pass


class InputValidationError(PromoliftError):
    """Raised when a baseline configuration or request is rejected before computation."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: object = None,
        **context,
    ):
        super().__init__(message, **context)
        self.field = field
        self.value = value

    def __str__(self) -> str:
        parts = [self.args[0]]
        if self.field:
            parts.append(f"field={self.field}")
        if self.value is not None:
            parts.append(f"value={self.value!r}")
        return " | ".join(parts + self._context())


class InsufficientDataError(PromoliftError):
    """Raised when there's not enough history for computation."""

    def __init__(
        self,
        message: str,
        required: int,
        available: int,
        method: str | None = None,
        **context,
    ):
        super().__init__(message, **context)
        self.required = required
        self.available = available
        self.method = method

    def __str__(self) -> str:
        parts = [self.args[0], f"required={self.required}, available={self.available}"]
        if self.method:
            parts.append(f"method={self.method}")
        return " | ".join(parts + self._context())


class InsufficientSeasonalHistoryError(InsufficientDataError):
    """Raised when a method needs more than the available seasonal history."""

    pass


class BaselineNotFoundError(PromoliftError):
    """Raised when a baseline id is not present in storage."""

    pass


class BaselineNotReadyError(PromoliftError):
    """Raised when a decomposition targets a baseline that is not active or approved."""

    def __init__(self, message: str, status: str | None = None, **context):
        super().__init__(message, **context)
        self.status = status

    def __str__(self) -> str:
        parts = [self.args[0]]
        if self.status:
            parts.append(f"status={self.status}")
        return " | ".join(parts + self._context())


class NoOverlapError(PromoliftError):
    """Raised when a decomposition window intersects no baseline period."""

    pass


class InvalidStateTransitionError(PromoliftError):
    """Raised when a baseline lifecycle transition is not allowed."""

    def __init__(
        self,
        message: str,
        current: str | None = None,
        target: str | None = None,
        **context,
    ):
        super().__init__(message, **context)
        self.current = current
        self.target = target

    def __str__(self) -> str:
        parts = [self.args[0]]
        if self.current:
            parts.append(f"from={self.current}")
        if self.target:
            parts.append(f"to={self.target}")
        return " | ".join(parts + self._context())


class CalculationError(PromoliftError):
    """Raised when baseline calculation fails. Wraps the underlying cause."""

    pass


class CalculationTimeoutError(CalculationError):
    """Raised when calculation exceeds its wall-clock budget. Baseline stays calculating."""

    def __init__(self, message: str, timeout_seconds: float | None = None, **context):
        super().__init__(message, **context)
        self.timeout_seconds = timeout_seconds


class CalculationSupersededError(CalculationError):
    """Raised when a newer calculation request for the same baseline replaced this one."""

    pass


class DataFetchError(PromoliftError):
    """Raised when data cannot be fetched from a provider."""

    def __init__(
        self,
        message: str,
        source: str | None = None,
        status_code: int | None = None,
        **context,
    ):
        super().__init__(message, **context)
        self.source = source
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.args[0]]
        if self.source:
            parts.append(f"source={self.source}")
        if self.status_code:
            parts.append(f"status={self.status_code}")
        return " | ".join(parts + self._context())


class StorageError(PromoliftError):
    """Raised when persisted baseline data cannot be read or written."""

    pass
