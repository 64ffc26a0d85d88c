"""Error taxonomy for the regeneration pipeline."""


class ColProfilesError(Exception):
    """Base class for all col-profiles errors."""


class ElevationProviderError(ColProfilesError):
    """The elevation provider could not return a profile."""

    code = "PROVIDER_ERROR"


class RateLimitedError(ElevationProviderError):
    """The provider signalled that the request quota is exhausted."""

    code = "RATE_LIMITED"

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class ElevationApiError(ElevationProviderError):
    """Transient network or server failure from the provider."""

    code = "API_ERROR"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProfileValidationError(ColProfilesError):
    """A freshly computed profile disagrees with the catalogue record."""

    def __init__(self, reasons: list[str]):
        super().__init__("Profile validation failed: " + ", ".join(reasons))
        self.reasons = reasons


class BackupError(ColProfilesError):
    """The catalogue snapshot could not be written."""


class PersistenceError(ColProfilesError):
    """The catalogue store refused a profile update."""


class ColNotFoundError(ColProfilesError):
    def __init__(self, col_id: str):
        super().__init__(f"Col {col_id} not found")
        self.col_id = col_id


def classify_error(exc: BaseException) -> str:
    """Map an exception raised inside a per-col task to a metrics kind."""
    if isinstance(exc, RateLimitedError):
        return "rate_limited"
    if isinstance(exc, ElevationProviderError):
        return "provider_error"
    if isinstance(exc, ProfileValidationError):
        return "validation"
    if isinstance(exc, PersistenceError):
        return "persistence"
    return "unexpected"
