"""Domain logic for turning relay requests into upstream image edits."""

from __future__ import annotations

import binascii
import logging
from functools import lru_cache
from typing import Optional

from .config import Settings, get_settings
from .errors import ConfigurationError, MissingInputError, RateLimitError, UpstreamError
from .prompts import get_edit_instruction, get_reference_edit_instruction
from .schemas import GenerateRequest, GenerateResponse
from .utils import decode_data_url
from .aiservices.geminiimagegenerationclient import GeminiImageGenerationClient
from .aiservices.imagegenerationclient import ImageGenerationClient, ImageInput

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"
RATE_LIMIT_MESSAGE = "Too many requests. Please try again later."


class RelayService:
    """Forwards hairstyle edits to the upstream image model."""

    def __init__(
        self,
        settings: Settings | None = None,
        image_client: Optional[ImageGenerationClient] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._image_client = image_client
        if self._image_client is None and self.api_key_configured:
            self._image_client = GeminiImageGenerationClient(self.settings)

    @property
    def api_key_configured(self) -> bool:
        return bool(self.settings.api_key.get_secret_value())

    @property
    def model_id(self) -> str:
        if self._image_client is not None:
            return self._image_client.model_id
        return self.settings.image_model_id

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------
    def generate_hairstyle(self, request: GenerateRequest) -> GenerateResponse:
        if not request.image or not request.prompt:
            raise MissingInputError("Missing image or prompt")

        if self._image_client is None:
            logger.error("API key is missing on server")
            raise ConfigurationError("Server configuration error: API Key missing")

        try:
            source = self._to_image_input(request.image, request.mimeType)
            reference = None
            if request.referenceImage:
                reference = self._to_image_input(request.referenceImage, None)
                instruction = get_reference_edit_instruction(request.prompt)
            else:
                instruction = get_edit_instruction(request.prompt)

            result = self._image_client.generate(source, instruction, reference)
        except Exception as exc:
            logger.exception("Generation error")
            raise self._translate_error(exc) from exc

        return GenerateResponse(imageUrl=result.image_url, text=result.text)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_image_input(value: str, mime_type: Optional[str]) -> ImageInput:
        try:
            data, data_url_mime = decode_data_url(value)
        except (binascii.Error, ValueError) as exc:
            raise ValueError(f"Invalid base64 image data: {exc}") from exc
        return ImageInput(data=data, mime_type=mime_type or data_url_mime or DEFAULT_MIME_TYPE)

    @staticmethod
    def _translate_error(exc: Exception) -> UpstreamError | RateLimitError:
        message = str(exc)
        if "429" in message:
            return RateLimitError(RATE_LIMIT_MESSAGE)
        return UpstreamError(message or "Internal Server Error", details=repr(exc))


@lru_cache
def get_relay_service() -> RelayService:
    return RelayService(get_settings())
