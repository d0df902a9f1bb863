"""Enumerations shared across the engine."""

import enum


class ElementKind(str, enum.Enum):
    NAME = "name"
    DATE = "date"
    TEXT = "text"


class TextAlignment(str, enum.Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class NameFormat(str, enum.Enum):
    ORIGINAL = "original"
    UPPERCASE = "uppercase"
    LOWERCASE = "lowercase"
    TITLECASE = "titlecase"


class CompositionStage(str, enum.Enum):
    VALIDATION = "validation"
    RENDERING = "rendering"
    EMBEDDING = "embedding"
    FINALIZATION = "finalization"


# Fixed order of a composition run.
STAGE_ORDER: tuple[CompositionStage, ...] = (
    CompositionStage.VALIDATION,
    CompositionStage.RENDERING,
    CompositionStage.EMBEDDING,
    CompositionStage.FINALIZATION,
)
