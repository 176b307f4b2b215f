"""
Run configuration.
Reads VOYAGE_* variables (and OPENAI_API_KEY) from the environment and .env,
with CLI overrides applied on top.
"""
from __future__ import annotations

from typing import Any, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .agents import DEFAULT_MODEL
from .extraction import DEFAULT_PAGE_CHUNK_SIZE
from .schema import StandardizationMode
from .standardize import DEFAULT_ROW_CHUNK_SIZE


class Settings(BaseSettings):
    """Extraction run settings."""

    model_config = SettingsConfigDict(
        env_prefix="VOYAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        protected_namespaces=(),
    )

    model_name: str = Field(
        default=DEFAULT_MODEL,
        validation_alias="VOYAGE_MODEL",
        description="pydantic-ai model name",
    )
    api_key: Optional[str] = Field(
        default=None,
        validation_alias="OPENAI_API_KEY",
        description="API key bound to the OpenAI provider",
    )
    page_chunk_size: int = Field(default=DEFAULT_PAGE_CHUNK_SIZE, ge=1, description="Pages per extraction call")
    row_chunk_size: int = Field(default=DEFAULT_ROW_CHUNK_SIZE, ge=1, description="Rows per standardization call")
    render_scale: float = Field(default=1.0, gt=0, description="Page render scale")
    jpeg_quality: int = Field(default=80, ge=1, le=100, description="JPEG quality of rendered pages")
    mode: StandardizationMode = StandardizationMode.ROW
    tag_source: bool = False
    isolate_document_failures: bool = Field(
        default=False,
        validation_alias="VOYAGE_ISOLATE_DOCUMENTS",
        description="Skip unreadable PDFs instead of failing the run",
    )

    @field_validator("mode", mode="before")
    @classmethod
    def _normalize_mode(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @classmethod
    def from_env(cls) -> "Settings":
        # other providers read their keys from os.environ, so .env is exported too
        load_dotenv(find_dotenv(usecwd=True))
        return cls()

    def override(self, **changes: Any) -> "Settings":
        """Return a validated copy with every non-None change applied."""
        unknown = set(changes) - set(type(self).model_fields)
        if unknown:
            raise TypeError(f"Unknown settings: {', '.join(sorted(unknown))}")
        values = self.model_dump()
        values.update({k: v for k, v in changes.items() if v is not None})
        return type(self).model_validate(values)
