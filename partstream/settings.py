from __future__ import annotations

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PAGE_SIZE = 1024 * 1024


class TransferSettings(BaseSettings):
    """Configuration for the download and upload pipelines."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    download_page_size: int = Field(
        default=PAGE_SIZE,
        validation_alias="PARTSTREAM_DOWNLOAD_PAGE_SIZE",
    )
    upload_page_size: int = Field(
        default=PAGE_SIZE,
        validation_alias="PARTSTREAM_UPLOAD_PAGE_SIZE",
    )
    upload_min_size: int = Field(
        default=5 * 1024 * 1024,
        validation_alias="PARTSTREAM_UPLOAD_MIN_SIZE",
    )
    upload_channel: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "PARTSTREAM_UPLOAD_CHANNEL",
            "PARTSTREAM_DEFAULT_CHANNEL",
        ),
    )
    max_upload_parts: int | None = Field(
        default=None,
        validation_alias="PARTSTREAM_MAX_UPLOAD_PARTS",
    )

    @field_validator("download_page_size", "upload_page_size")
    @classmethod
    def _check_page_size(cls, value: int) -> int:
        if value <= 0 or value % 1024:
            msg = f"page size must be a positive multiple of 1024, got {value}"
            raise ValueError(msg)
        return value

    @field_validator("upload_min_size")
    @classmethod
    def _check_min_size(cls, value: int) -> int:
        if value < 0:
            msg = "upload_min_size must not be negative"
            raise ValueError(msg)
        return value

    @field_validator("max_upload_parts")
    @classmethod
    def _check_max_upload_parts(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            msg = "max_upload_parts must be at least 1"
            raise ValueError(msg)
        return value


class GatewaySettings(BaseSettings):
    """Configuration for the HTTP gateway in front of the messaging backend."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    endpoint: str = Field(
        default="http://127.0.0.1:8081",
        validation_alias="PARTSTREAM_GATEWAY_ENDPOINT",
    )
    timeout: float = Field(
        default=60.0,
        validation_alias="PARTSTREAM_GATEWAY_TIMEOUT",
    )
    max_upload_parts: int = Field(
        default=2000,
        validation_alias="PARTSTREAM_GATEWAY_MAX_UPLOAD_PARTS",
    )


def load_transfer_settings_from_env() -> TransferSettings:
    """Load transfer settings from environment variables.

    Returns:
        TransferSettings instance populated from environment variables.
    """
    return TransferSettings()


def load_gateway_settings_from_env() -> GatewaySettings:
    """Load gateway settings from environment variables.

    Returns:
        GatewaySettings instance populated from environment variables.
    """
    return GatewaySettings()
