from functools import lru_cache
from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the HairGenius relay and client."""

    #----------------------------------------------------------
    # Upstream API settings
    #----------------------------------------------------------
    api_key: SecretStr = Field(
        default=SecretStr(""),
        validation_alias=AliasChoices("HAIRGENIUS_API_KEY", "API_KEY", "GEMINI_API_KEY"),
        description="API key for authenticating with the Gemini image generation service.",
    )

    image_model_id: str = Field(
        default="gemini-2.5-flash-image",
        description="Gemini model id used for hairstyle edits.",
    )

    #----------------------------------------------------------
    # Relay server settings
    #----------------------------------------------------------
    host: str = Field(
        default="0.0.0.0",
        description="Interface the relay binds to.",
    )
    port: int = Field(
        default=3000,
        validation_alias=AliasChoices("HAIRGENIUS_PORT", "PORT"),
        description="Port the relay listens on.",
    )

    #----------------------------------------------------------
    # Client settings
    #----------------------------------------------------------
    relay_url: str = Field(
        default="http://127.0.0.1:3000",
        description="Base URL of the relay used by the generation client.",
    )
    request_timeout_seconds: float = Field(
        default=120.0,
        gt=0.0,
        description="Transport timeout for a single relay request.",
    )
    batch_delay_seconds: float = Field(
        default=1.5,
        ge=0.0,
        description="Pause before each batch item to stay under the upstream rate limit.",
    )

    #----------------------------------------------------------
    # Fidelity settings
    #----------------------------------------------------------
    preview_max_dimension: int = Field(
        default=512,
        gt=0,
        description="Longest edge, in pixels, of source images sent for low-fidelity previews.",
    )
    final_max_dimension: int = Field(
        default=1024,
        gt=0,
        description="Longest edge, in pixels, of source images sent for high-fidelity results.",
    )
    preview_jpeg_quality: int = Field(default=80, ge=1, le=95)
    final_jpeg_quality: int = Field(default=92, ge=1, le=95)

    model_config = SettingsConfigDict(
        env_prefix="HAIRGENIUS_",
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
