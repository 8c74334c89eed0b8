"""
HTTP client for the HairGenius relay.

This module provides the RelayGenerationClient used by the batch
orchestrator and the single-shot flows. Every failure, whether transport,
HTTP status or an empty result, surfaces as a GenerationError carrying a
message fit to show next to the affected preview.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..config import Settings, get_settings
from ..errors import GenerationError
from ..utils import downscale_image
from .imagegenerationclient import GenerationResult

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"


class RelayGenerationClient:
    """
    Async wrapper around ``POST /api/generate``.

    Handles:
    - Fidelity modes (source images are downscaled for previews)
    - Mapping of relay error bodies to GenerationError
    - Transport timeouts from settings
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        relay_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the relay client.

        Args:
            settings: Runtime settings (default: from environment)
            relay_url: Base URL overriding ``settings.relay_url``
            transport: Optional httpx transport, used to talk to an
                in-process app or a mock
        """
        self.settings = settings or get_settings()
        self.relay_url = (relay_url or self.settings.relay_url).rstrip("/")
        self._transport = transport

    async def generate_hairstyle(
        self,
        image: str,
        prompt: str,
        reference_image: Optional[str] = None,
        mime_type: str = "image/jpeg",
        high_quality: bool = False,
    ) -> GenerationResult:
        """
        Request one hairstyle edit from the relay.

        Args:
            image: Base64 source photo, optionally data-URL prefixed
            prompt: Hairstyle instruction
            reference_image: Optional base64 photo of a hairstyle to copy
            mime_type: Mime type of ``image``
            high_quality: Send the larger, final-result version of the photo

        Returns:
            GenerationResult with a data-URL image

        Raises:
            GenerationError: If the relay fails or returns no image
        """
        if high_quality:
            image, mime_type = downscale_image(
                image, mime_type, self.settings.final_max_dimension, self.settings.final_jpeg_quality
            )
        else:
            image, mime_type = downscale_image(
                image, mime_type, self.settings.preview_max_dimension, self.settings.preview_jpeg_quality
            )

        payload: Dict[str, Any] = {
            "image": image,
            "prompt": prompt,
            "referenceImage": reference_image,
            "mimeType": mime_type,
        }
        url = f"{self.relay_url}{GENERATE_PATH}"

        try:
            async with httpx.AsyncClient(
                timeout=self.settings.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post(url, json=payload)
        except httpx.RequestError as exc:
            logger.error("POST %s failed: %s: %s", url, type(exc).__name__, exc)
            raise GenerationError(f"Could not reach the generation service: {exc}") from exc

        data = self._read_json(response)
        if not response.is_success:
            message = data.get("error") if isinstance(data.get("error"), str) else None
            logger.warning("POST %s returned HTTP %s: %s", url, response.status_code, message)
            raise GenerationError(
                message or f"Generation failed (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        image_url = data.get("imageUrl")
        text = data.get("text")
        if not image_url:
            raise GenerationError(text or "No image was generated.", status_code=response.status_code)
        return GenerationResult(image_url=image_url, text=text)

    @staticmethod
    def _read_json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
