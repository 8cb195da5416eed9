from __future__ import annotations


class NightNotesError(RuntimeError):
    """Base for every failure surfaced to a caller as ``{"error": message}``."""

    status_code = 500
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(NightNotesError):
    status_code = 400
    default_message = "Invalid input."


class WizardBlockedError(ValidationError):
    default_message = "Complete this step before continuing."


class NotFoundError(NightNotesError):
    status_code = 404
    default_message = "Not found."


class ParseError(NightNotesError):
    default_message = "Failed to parse analysis"


class UpstreamAuthError(NightNotesError):
    default_message = "API authentication failed. Please check configuration."


class UpstreamRateLimitError(NightNotesError):
    status_code = 429
    default_message = "Too many requests. Please wait a moment and try again."


class UpstreamOtherError(NightNotesError):
    default_message = "Something went wrong generating your reflection. Please try again."


class QuotaExceededError(NightNotesError):
    status_code = 429
    default_message = "You've used all of this month's reflections."
