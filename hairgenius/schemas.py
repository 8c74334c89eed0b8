"""Pydantic models shared by the relay endpoints and the client workflow."""

from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---- Relay wire models ----
class GenerateRequest(BaseModel):
    image: Optional[str] = Field(None, description="Base64 source photo, optionally data-URL prefixed")
    prompt: Optional[str] = Field(None, description="Hairstyle instruction")
    referenceImage: Optional[str] = Field(None, description="Base64 photo of a hairstyle to copy")
    mimeType: Optional[str] = Field(None, description="Mime type of the source photo")


class GenerateResponse(BaseModel):
    imageUrl: Optional[str] = Field(..., description="Generated image as a data URL")
    text: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    model: str
    apiKeyConfigured: bool
# ---------------------------


class StyleOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: str
    prompt: str
    category: Literal["style", "color", "creative"]


class PreviewStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class GeneratedPreview(BaseModel):
    model_config = ConfigDict(frozen=True)

    styleId: str
    status: PreviewStatus = PreviewStatus.IDLE
    imageUrl: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (PreviewStatus.SUCCESS, PreviewStatus.ERROR)


class AppState(str, Enum):
    IDLE = "IDLE"
    UPLOADING = "UPLOADING"
    READY_TO_GENERATE = "READY_TO_GENERATE"
    BATCH_GENERATING = "BATCH_GENERATING"
    REFINING = "REFINING"  # applying a color to a chosen style
    CUSTOM_GENERATING = "CUSTOM_GENERATING"
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"


class SourceImage(BaseModel):
    model_config = ConfigDict(frozen=True)

    data: str = Field(..., description="Base64 payload, optionally data-URL prefixed")
    mimeType: str = "image/jpeg"
