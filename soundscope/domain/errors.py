class SoundScopeError(Exception):
    """Base class for errors raised by data sources and collaborators."""


class RateLimited(SoundScopeError):
    """Operation was rate limited by provider. Includes suggested wait time in milliseconds."""

    def __init__(self, retry_after_ms: int, message: str = "Rate limited") -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class TemporaryFailure(SoundScopeError):
    """Transient provider or network failure. Retrying may succeed."""


class PermanentFailure(SoundScopeError):
    """Non-retriable failure due to invalid input or authorization issues."""


class NotFound(SoundScopeError):
    """Requested resource was not found."""


class AlbumArtNotFound(NotFound):
    """The artwork lookup had no image for the requested artist/album."""
