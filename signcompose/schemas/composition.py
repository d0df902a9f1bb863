"""Pydantic schema for composition run options."""

from pydantic import BaseModel, Field, model_validator

from signcompose.config import Settings, get_settings
from signcompose.models.enums import NameFormat, TextAlignment
from signcompose.services.element_renderer import RenderConfig
from signcompose.services.page_embedder import EmbedConfig
from signcompose.services.style_resolver import StyleConfig


class CompositionConfig(BaseModel):
    """Options for one composer.

    Split into the frozen per-service configs with ``style_config()``,
    ``render_config()`` and ``embed_config()``.
    """

    enable_validation: bool = True
    strict_validation: bool = False
    enable_retry: bool = True
    max_retry_attempts: int = Field(3, ge=1, le=10)

    enable_overlap_protection: bool = True
    overlap_gap: float = Field(5.0, ge=0)

    text_alignment: TextAlignment = TextAlignment.LEFT
    date_format: str = Field("YYYY-MM-DD", min_length=1)
    name_format: NameFormat = NameFormat.ORIGINAL

    min_font_size: float = Field(8, gt=0)
    max_font_size: float = Field(72, gt=0)
    default_font_size: float = Field(12, gt=0)
    text_padding_percent: float = Field(5.0, ge=0, lt=50)
    auto_size_text: bool = True

    @model_validator(mode="after")
    def _check_font_range(self) -> "CompositionConfig":
        if not self.min_font_size <= self.default_font_size <= self.max_font_size:
            raise ValueError(
                "font sizes must satisfy min_font_size <= default_font_size <= max_font_size "
                f"(got {self.min_font_size}, {self.default_font_size}, {self.max_font_size})"
            )
        return self

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "CompositionConfig":
        settings = settings or get_settings()
        return cls(
            enable_validation=settings.enable_validation,
            strict_validation=settings.strict_validation,
            enable_retry=settings.enable_retry,
            max_retry_attempts=settings.max_retry_attempts,
            enable_overlap_protection=settings.enable_overlap_protection,
            overlap_gap=settings.overlap_gap,
            text_alignment=settings.text_alignment,
            date_format=settings.date_format,
            name_format=settings.name_format,
            min_font_size=settings.min_font_size,
            max_font_size=settings.max_font_size,
            default_font_size=settings.default_font_size,
            text_padding_percent=settings.text_padding_percent,
            auto_size_text=settings.auto_size_text,
        )

    def style_config(self) -> StyleConfig:
        return StyleConfig(
            default_font_size=self.default_font_size,
            min_font_size=self.min_font_size,
            max_font_size=self.max_font_size,
            auto_size_text=self.auto_size_text,
            text_padding_percent=self.text_padding_percent,
        )

    def render_config(self) -> RenderConfig:
        return RenderConfig(
            text_alignment=self.text_alignment,
            date_format=self.date_format,
            enable_name_formatting=self.name_format != NameFormat.ORIGINAL,
            name_format=self.name_format,
        )

    def embed_config(self) -> EmbedConfig:
        return EmbedConfig(
            enable_overlap_protection=self.enable_overlap_protection,
            overlap_gap=self.overlap_gap,
        )
