"""Exceptions raised by the news_brief pipeline."""

from typing import Optional


class NewsBriefError(Exception):
    """Base class for pipeline errors."""


class SourceFetchError(NewsBriefError):
    """A listing page or feed could not be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class SummaryUnavailableError(NewsBriefError):
    """The summarizer produced no usable summary."""


class NotificationNotSentError(NewsBriefError):
    """The notifier reported that the message was not delivered."""


class StepFailedError(NewsBriefError):
    """A workflow step exhausted its retry budget."""

    def __init__(self, step_name: str, attempts: int, last_error: Optional[BaseException]):
        super().__init__(
            f"Step '{step_name}' failed after {attempts} attempt(s): {last_error}"
        )
        self.step_name = step_name
        self.attempts = attempts
        self.last_error = last_error


class DeliveryError(NewsBriefError):
    """Fatal failure of a single article delivery."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url
