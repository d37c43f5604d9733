"""Error taxonomy shared by the content, storage and identity layers."""


class PortfolioError(Exception):
    """Base class for every error raised by the backend core."""


class NotConfigured(PortfolioError):
    """Backend credentials are missing; no network call was attempted."""

    def __init__(self, message: str = "Backend is not configured. Please set up environment variables."):
        super().__init__(message)


class NotFound(PortfolioError):
    """The targeted document or object does not exist."""


class BackendFailure(PortfolioError):
    """Transport, permission or quota error from the store. The driver error is ``__cause__``."""


class InvalidCredentials(PortfolioError):
    """Sign-in or token verification failed."""


class UploadCanceled(PortfolioError):
    """A progress-tracked upload was canceled before it committed."""
