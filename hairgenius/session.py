"""Session state shared by the generation flows and whatever renders them.

A session starts when a photo is selected and ends when it is cleared or
replaced. It owns the Preview Collection, the single final-result slot and
the current :class:`AppState`. Listeners registered with :meth:`subscribe`
receive a copy of the Preview Collection on every publish.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from .schemas import AppState, GeneratedPreview, PreviewStatus, SourceImage

logger = logging.getLogger(__name__)

PreviewListener = Callable[[Dict[str, GeneratedPreview]], None]


class Session:
    """Mutable state for one photo."""

    def __init__(self) -> None:
        self.source_image: Optional[SourceImage] = None
        self.generated_image: Optional[str] = None
        self.app_state: AppState = AppState.IDLE
        self.error: Optional[str] = None
        self.previews: Dict[str, GeneratedPreview] = {}
        # Bumped on every upload or clear so in-flight work can tell it is stale.
        self.epoch: int = 0
        self._listeners: List[PreviewListener] = []

    def __repr__(self) -> str:
        return (
            f"Session(state={self.app_state.value}, epoch={self.epoch}, "
            f"has_image={self.source_image is not None}, previews={len(self.previews)})"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def select_image(self, data: str, mime_type: str = "image/jpeg") -> None:
        self.source_image = SourceImage(data=data, mimeType=mime_type)
        self.generated_image = None
        self.previews = {}
        self.error = None
        self.app_state = AppState.READY_TO_GENERATE
        self.epoch += 1
        logger.info("New source image selected (%s)", mime_type)
        self.publish()

    def clear(self) -> None:
        self.source_image = None
        self.generated_image = None
        self.previews = {}
        self.app_state = AppState.IDLE
        self.error = None
        self.epoch += 1
        self.publish()

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------
    def set_preview(self, preview: GeneratedPreview) -> None:
        self.previews[preview.styleId] = preview

    def preview_status(self, style_id: str) -> PreviewStatus:
        preview = self.previews.get(style_id)
        return preview.status if preview is not None else PreviewStatus.IDLE

    def has_successful_preview(self) -> bool:
        return any(p.status is PreviewStatus.SUCCESS for p in self.previews.values())

    def subscribe(self, listener: PreviewListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self) -> None:
        for listener in list(self._listeners):
            listener(dict(self.previews))
