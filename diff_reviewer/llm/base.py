from abc import ABC, abstractmethod

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


class ModelCallError(Exception):
    """Raised by a client when a generation call fails.

    ``status`` carries the HTTP status code when the service answered,
    ``None`` for transport-level failures.
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

    @property
    def is_rate_limit(self) -> bool:
        return self.status == 429

    @property
    def is_retryable(self) -> bool:
        return self.status in RETRYABLE_STATUSES


class ModelClient(ABC):
    """A single "generate text for this prompt" endpoint."""

    @abstractmethod
    def generate(self, prompt: str, model: str, max_output_tokens: int = 8192) -> str:
        """Return the model's text for *prompt* using *model*.

        Raises :class:`ModelCallError` on any failed call.
        """
