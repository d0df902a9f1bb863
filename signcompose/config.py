"""Engine settings from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

from signcompose.models.enums import NameFormat, TextAlignment


class Settings(BaseSettings):
    """Engine configuration.

    Every field can be overridden with a ``SIGNCOMPOSE_``-prefixed
    environment variable (e.g. ``SIGNCOMPOSE_MAX_FONT_SIZE=48``) or a ``.env``
    file in the working directory.
    """

    app_name: str = "SignCompose"

    # Storage paths (used by document adapters when saving without a target)
    output_dir: Path = Path("storage/signed")

    # Extra directories searched for TrueType fonts by image documents
    font_dirs: list[Path] = []

    # Composer stages
    enable_validation: bool = True
    strict_validation: bool = False  # Validation issues abort the run before Render
    enable_retry: bool = True
    max_retry_attempts: int = 3  # Total embed attempts, first pass included

    # Style resolver
    min_font_size: int = 8
    max_font_size: int = 72
    default_font_size: int = 12
    auto_size_text: bool = True
    text_padding_percent: float = 5.0  # Per side, as a percentage of the box

    # Element renderer
    text_alignment: TextAlignment = TextAlignment.LEFT
    date_format: str = "YYYY-MM-DD"
    name_format: NameFormat = NameFormat.ORIGINAL

    # Page embedder
    enable_overlap_protection: bool = True
    overlap_gap: float = 5.0  # Page units between a relocated mark and its collider

    model_config = {
        "env_prefix": "SIGNCOMPOSE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @field_validator("text_alignment", "name_format", mode="before")
    @classmethod
    def _lowercase_choice(cls, value: object) -> object:
        return value.lower() if isinstance(value, str) else value

    def ensure_output_dir(self) -> None:
        """Create the output directory if it doesn't exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)


@lru_cache
def get_settings() -> Settings:
    return Settings()
