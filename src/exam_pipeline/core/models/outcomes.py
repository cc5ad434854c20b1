# ============================================================================
# src/exam_pipeline/core/models/outcomes.py
# ============================================================================
"""
Extraction Outcomes

Every extraction attempt ends in exactly one of these. Components below the
orchestration boundary return them instead of raising.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from .enums import OutcomeKind

DEFAULT_QUALITY_SUGGESTION = "Try an image with better quality."


@dataclass(frozen=True)
class ExtractionOutcome:
    """Base class of the extraction outcome union."""

    kind: ClassVar[OutcomeKind]

    @property
    def is_success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def user_message(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        raise NotImplementedError


@dataclass(frozen=True)
class ExtractionSuccess(ExtractionOutcome):
    """Structured data returned by the service: category -> exam name -> value."""

    data: Dict[str, Any] = field(default_factory=dict)
    kind: ClassVar[OutcomeKind] = OutcomeKind.SUCCESS

    @property
    def user_message(self) -> str:
        return "File processed successfully. Results extracted."

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "data": self.data}


@dataclass(frozen=True)
class ExtractionWarning(ExtractionOutcome):
    """Nothing to extract, or the input was rejected. Not an error."""

    message: str = ""
    kind: ClassVar[OutcomeKind] = OutcomeKind.WARNING

    @property
    def user_message(self) -> str:
        return self.message

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


@dataclass(frozen=True)
class ImageQualityFailure(ExtractionOutcome):
    """The service could not read the image; recoverable with a better photo."""

    message: str = ""
    suggestion: Optional[str] = None
    kind: ClassVar[OutcomeKind] = OutcomeKind.IMAGE_QUALITY_FAILURE

    @property
    def user_message(self) -> str:
        return f"{self.message}. {self.suggestion or DEFAULT_QUALITY_SUGGESTION}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "suggestion": self.suggestion,
        }


@dataclass(frozen=True)
class ExtractionFailure(ExtractionOutcome):
    error_message: str = ""
    kind: ClassVar[OutcomeKind] = OutcomeKind.FAILURE

    @property
    def user_message(self) -> str:
        return f"Could not process the file: {self.error_message}"

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "error": self.error_message}
