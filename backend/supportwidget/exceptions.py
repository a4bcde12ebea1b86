"""Error taxonomy shared by services and mapped to HTTP responses in main.py."""


class SupportWidgetError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    public_message = "Internal server error. Please try again later."

    def __init__(self, message: str = None):
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class InvalidRequestError(SupportWidgetError):
    """Missing or malformed input. Raised before any storage access."""

    status_code = 400
    public_message = "Invalid request"


class NotFoundError(SupportWidgetError):
    status_code = 404
    public_message = "Not found"


class SessionNotFoundError(NotFoundError):
    public_message = "Session not found or expired"


class KnowledgeEntryNotFoundError(NotFoundError):
    public_message = "FAQ not found"


class UnansweredQueryNotFoundError(NotFoundError):
    public_message = "Unanswered query not found"


class ChatMessageNotFoundError(NotFoundError):
    public_message = "Message not found"


class StorageUnavailableError(SupportWidgetError):
    """An essential read could not be served by storage."""

    status_code = 503
    public_message = "Service temporarily unavailable. Please try again later."


class GeneratorError(SupportWidgetError):
    """External answer generator failed. Never surfaces past the synthesizer."""


class DuplicateLeadError(SupportWidgetError):
    """A lead with the same (tenant_id, email) already exists."""

    status_code = 409
