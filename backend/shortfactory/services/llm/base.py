"""Abstract base class for text generation adapters.

Defines the async interface every scripting provider implements: a prompt
in, a validated instance of the caller's schema out.
"""

from abc import ABC, abstractmethod
from typing import Optional, Type, TypeVar

from pydantic import BaseModel

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LLMAdapter(ABC):
    """Abstract base class for text generation adapters.

    Provider errors are surfaced as-is so the retry layer can classify them.
    """

    model_id: str

    @abstractmethod
    async def generate_text(
        self,
        prompt: str,
        schema: Type[SchemaT],
        *,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
    ) -> SchemaT:
        """Generate structured text output from a prompt.

        Args:
            prompt: The user prompt to send to the model.
            schema: Pydantic model class defining the expected output structure.
            system_prompt: Optional system/instruction prompt.
            temperature: Sampling temperature (0.0-1.0). Lower = more deterministic.

        Returns:
            Validated instance of the supplied schema class.
        """
        ...
