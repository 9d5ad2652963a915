"""Abstract interface (port) for the external content generation capability."""

from abc import ABC, abstractmethod

from batch_engine.domain.entities import GenerationRequest, GenerationResult


class ContentGenerator(ABC):
    """Port for turning one item's input into generated content.

    Implementations live in the infrastructure layer (e.g. OpenRouter).
    The batch engine treats this as a black box.
    """

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Generate a single piece of content.

        Args:
            request: Topic, keywords and additional info merged with the
                effective generation settings (provider, model, style,
                length, temperature).

        Returns:
            The generated title and body together with usage and cost.

        Raises:
            GenerationError: If the provider fails (timeout, quota, malformed
                response, ...).
        """
        ...
