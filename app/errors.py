## app/errors.py

from typing import Optional


class ComicError(Exception):
    """Base class for every failure surfaced to the user."""


class AuthError(ComicError):
    """Invalid or forbidden API key."""


class ContentPolicyError(ComicError):
    def __init__(self, message: str, category: Optional[str] = None):
        super().__init__(message)
        self.category = category


class MalformedResponseError(ComicError):
    """The scene response could not be turned into panels."""


class TransientServiceError(ComicError):
    """Rate limit or server fault; worth retrying."""


class ServiceError(ComicError):
    """Any other API failure."""


class RetriesExhaustedError(ComicError):
    def __init__(self, model: str, attempts: int, last_error: Exception):
        super().__init__(
            f"Failed to generate image after {attempts} attempts for model '{model}'. "
            f"Last error: {last_error}"
        )
        self.model = model
        self.attempts = attempts
        self.last_error = last_error


class PerPanelImageError(ComicError):
    def __init__(self, panel_index: int, cause: Exception):
        super().__init__(f"Error on panel {panel_index}: {cause}")
        self.panel_index = panel_index
        self.cause = cause
