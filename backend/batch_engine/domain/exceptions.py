"""Domain-specific exceptions — framework-independent."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class ValidationError(Exception):
    """Raised when a caller supplies invalid arguments. Never retried."""


class InvalidStateError(Exception):
    """Raised when an operation is not allowed in the job's current state."""


class FormatError(Exception):
    """Raised when imported CSV text is malformed or has no usable rows."""


class GenerationError(Exception):
    """Raised by the generation capability when one item cannot be produced.

    Caught at the item executor boundary; never aborts a batch run.
    """

    def __init__(self, message: str, provider: str = "", status_code: int | None = None):
        self.message = message
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class ChatProviderError(Exception):
    """Raised when a chat provider returns an error.

    Provider-agnostic — works for OpenRouter, Groq, OpenAI, etc.
    """

    def __init__(self, provider: str, status_code: int, message: str):
        self.provider = provider
        self.status_code = status_code
        self.message = message
        super().__init__(f"[{provider}] {status_code}: {message}")
