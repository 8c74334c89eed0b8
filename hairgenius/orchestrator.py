"""Sequential preview generation and the single-shot generation flows."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from .catalog import COLORS_LIST, STYLES_LIST, find_color, find_style
from .config import Settings, get_settings
from .errors import GenerationError
from .prompts import get_refine_prompt, get_style_prompt
from .schemas import AppState, GeneratedPreview, PreviewStatus, SourceImage, StyleOption
from .session import Session
from .aiservices.imagegenerationclient import GenerationResult

logger = logging.getLogger(__name__)

BATCH_FALLBACK_ERROR = "Generation failed"
RETRY_FALLBACK_ERROR = "Retry failed"
REFINE_FALLBACK_ERROR = "Failed to apply color."
CUSTOM_FALLBACK_ERROR = "Custom generation failed."


class HairstyleGenerator(Protocol):
    async def generate_hairstyle(
        self,
        image: str,
        prompt: str,
        reference_image: Optional[str] = None,
        mime_type: str = "image/jpeg",
        high_quality: bool = False,
    ) -> GenerationResult: ...


class BatchOrchestrator:
    """
    Drives every generation flow for one :class:`Session`.

    Only one flow runs at a time. A flow that is started while another one
    is active returns ``False`` without touching the session, as does a flow
    started without a source image.
    """

    def __init__(
        self,
        session: Session,
        client: HairstyleGenerator,
        settings: Settings | None = None,
        styles: Sequence[StyleOption] = STYLES_LIST,
        colors: Sequence[StyleOption] = COLORS_LIST,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.session = session
        self.client = client
        self.settings = settings or get_settings()
        self.styles = tuple(styles)
        self.colors = tuple(colors)
        self._sleep = sleep
        self._active_flow: Optional[str] = None

    @property
    def is_busy(self) -> bool:
        return self._active_flow is not None

    # ------------------------------------------------------------------
    # Batch previews
    # ------------------------------------------------------------------
    async def batch_generate(self) -> bool:
        """Generate a low-fidelity preview for every catalog style, one at a time.

        Styles that already have a successful preview when the run starts are
        skipped. A failed style is recorded and the run moves on.
        """
        session = self.session
        source = session.source_image
        if source is None:
            logger.debug("Batch generation requested without a source image")
            return False
        if not self._acquire("batch"):
            return False

        epoch = session.epoch
        session.app_state = AppState.BATCH_GENERATING
        session.error = None

        completed = {
            style.id
            for style in self.styles
            if session.preview_status(style.id) is PreviewStatus.SUCCESS
        }
        for style in self.styles:
            if style.id not in completed:
                session.set_preview(GeneratedPreview(styleId=style.id, status=PreviewStatus.LOADING))
        session.publish()
        logger.info(
            "Batch run started: %d styles, %d already done", len(self.styles), len(completed)
        )

        try:
            for style in self.styles:
                if style.id in completed:
                    continue

                await self._sleep(self.settings.batch_delay_seconds)
                if session.epoch != epoch:
                    logger.info("Source image changed, stopping batch run before %s", style.id)
                    break

                preview = await self._generate_preview(style, source, BATCH_FALLBACK_ERROR)
                if session.epoch != epoch:
                    logger.info("Discarding %s preview for a replaced source image", style.id)
                    break

                session.set_preview(preview)
                session.publish()
        finally:
            self._release()
            if session.epoch == epoch:
                session.app_state = AppState.READY_TO_GENERATE

        logger.info("Batch run finished")
        return True

    async def retry_style(self, style_id: str) -> bool:
        """Regenerate the preview for ``style_id`` without touching the others."""
        session = self.session
        source = session.source_image
        if source is None:
            return False

        style = find_style(style_id, self.styles)
        if style is None:
            logger.warning("Ignoring retry for unknown style %r", style_id)
            return False
        if not self._acquire(f"retry of {style.id}"):
            return False

        epoch = session.epoch
        session.set_preview(GeneratedPreview(styleId=style.id, status=PreviewStatus.LOADING))
        session.publish()

        try:
            preview = await self._generate_preview(style, source, RETRY_FALLBACK_ERROR)
        finally:
            self._release()

        if session.epoch != epoch:
            return False
        session.set_preview(preview)
        session.publish()
        return True

    # ------------------------------------------------------------------
    # Single-shot flows
    # ------------------------------------------------------------------
    async def refine(self, style_id: str, color_id: str) -> bool:
        """Apply a color on top of a style at full fidelity.

        Returns True when the final result image was replaced.
        """
        session = self.session
        source = session.source_image
        if source is None:
            return False

        style = find_style(style_id, self.styles)
        color = find_color(color_id, self.colors)
        if style is None or color is None:
            logger.warning("Ignoring refine for unknown style %r or color %r", style_id, color_id)
            return False

        return await self._generate_final(
            AppState.REFINING,
            source,
            get_refine_prompt(style, color),
            None,
            REFINE_FALLBACK_ERROR,
        )

    async def custom_generate(self, prompt: str, reference_image: Optional[str] = None) -> bool:
        """Run a free-form prompt, optionally against a reference hairstyle photo.

        Returns True when the final result image was replaced.
        """
        source = self.session.source_image
        if source is None or not prompt.strip():
            return False

        return await self._generate_final(
            AppState.CUSTOM_GENERATING,
            source,
            prompt.strip(),
            reference_image,
            CUSTOM_FALLBACK_ERROR,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _acquire(self, flow: str) -> bool:
        if self._active_flow is not None:
            logger.warning(
                "Ignoring %s while %s is running", flow, self._active_flow
            )
            return False
        self._active_flow = flow
        return True

    def _release(self) -> None:
        self._active_flow = None

    async def _generate_preview(
        self,
        style: StyleOption,
        source: SourceImage,
        fallback_error: str,
    ) -> GeneratedPreview:
        try:
            result = await self.client.generate_hairstyle(
                source.data,
                get_style_prompt(style),
                None,
                source.mimeType,
                False,
            )
        except GenerationError as exc:
            logger.warning("Failed to generate %s: %s", style.id, exc.message)
            return GeneratedPreview(
                styleId=style.id,
                status=PreviewStatus.ERROR,
                error=exc.message or fallback_error,
            )
        except Exception as exc:
            logger.exception("Failed to generate %s", style.id)
            return GeneratedPreview(
                styleId=style.id,
                status=PreviewStatus.ERROR,
                error=str(exc) or fallback_error,
            )

        return GeneratedPreview(
            styleId=style.id,
            status=PreviewStatus.SUCCESS,
            imageUrl=result.image_url,
        )

    async def _generate_final(
        self,
        flow: AppState,
        source: SourceImage,
        prompt: str,
        reference_image: Optional[str],
        fallback_error: str,
    ) -> bool:
        session = self.session
        if not self._acquire(flow.value.lower()):
            return False

        epoch = session.epoch
        session.app_state = flow
        session.error = None

        error: Optional[str] = None
        result: Optional[GenerationResult] = None
        try:
            result = await self.client.generate_hairstyle(
                source.data,
                prompt,
                reference_image,
                source.mimeType,
                True,
            )
        except GenerationError as exc:
            logger.warning("%s failed: %s", flow.value, exc.message)
            error = exc.message or fallback_error
        except Exception as exc:
            logger.exception("%s failed", flow.value)
            error = str(exc) or fallback_error
        finally:
            self._release()

        if session.epoch != epoch:
            return False

        if result is None or not result.image_url:
            session.error = error or fallback_error
            session.app_state = AppState.READY_TO_GENERATE
            return False

        session.generated_image = result.image_url
        session.app_state = AppState.SUCCESS
        return True
