from __future__ import annotations

import logging
from typing import Any, List, Optional

from google import genai
from google.genai import types

from ..config import Settings, get_settings
from ..utils import to_data_url
from .imagegenerationclient import GenerationResult, ImageGenerationClient, ImageInput

logger = logging.getLogger(__name__)


class GeminiImageGenerationClient(ImageGenerationClient):
    """
    Image edits through the Gemini ``generate_content`` API.

    The source image goes first, an optional reference image second and the
    instruction text last.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Any = None) -> None:
        self.settings = settings or get_settings()
        self._model = self.settings.image_model_id
        self._client = client
        if self._client is None:
            api_key = self.settings.api_key.get_secret_value()
            self._client = genai.Client(api_key=api_key)

    @property
    def model_id(self) -> str:
        return self._model

    def generate(
        self,
        image: ImageInput,
        instruction: str,
        reference_image: Optional[ImageInput] = None,
    ) -> GenerationResult:
        contents: List[Any] = [types.Part.from_bytes(data=image.data, mime_type=image.mime_type)]
        if reference_image is not None:
            contents.append(
                types.Part.from_bytes(data=reference_image.data, mime_type=reference_image.mime_type)
            )
        contents.append(types.Part.from_text(text=instruction))

        logger.debug("Calling %s with %d parts", self._model, len(contents))
        response = self._client.models.generate_content(model=self._model, contents=contents)

        result = self._extract_result(response)
        if result.image_url is None and result.text is None:
            raise ValueError("No content generated from Gemini.")
        return result

    # --- Internals ------------------------------------------------------------

    @staticmethod
    def _extract_result(response: Any) -> GenerationResult:
        result = GenerationResult()
        candidates = getattr(response, "candidates", None) or []
        if not candidates:
            return result

        content = getattr(candidates[0], "content", None)
        for part in getattr(content, "parts", None) or []:
            inline_data = getattr(part, "inline_data", None)
            if inline_data is not None and inline_data.data:
                result.image_url = to_data_url(inline_data.data, inline_data.mime_type)
            elif getattr(part, "text", None):
                result.text = part.text
        return result
