from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class ImageInput:
    """Raw image bytes handed to an upstream model."""

    data: bytes
    mime_type: str = "image/jpeg"


@dataclass
class GenerationResult:
    """Normalized upstream output: an image data URL and/or model text."""

    image_url: Optional[str] = None
    text: Optional[str] = None


class ImageGenerationClient(ABC):
    """Abstract interface for an image editing client.

    Implementations must provide a synchronous generation method
    used by the relay service.
    """

    @property
    @abstractmethod
    def model_id(self) -> str:  # pragma: no cover - interface
        """Identifier of the upstream model."""

    @abstractmethod
    def generate(
        self,
        image: ImageInput,
        instruction: str,
        reference_image: Optional[ImageInput] = None,
    ) -> GenerationResult:
        """Edit ``image`` according to ``instruction``.

        Should raise on upstream failure, and when the model returns
        neither an image nor text.
        """
