from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import EngineErrorCode


class SubmissionKind(str, Enum):
    TEXT = "text"
    VIDEO = "video"
    AUDIO = "audio"


class MediaFile(BaseModel):
    """A file handed over by the media ingestion layer (e.g. an HTTP upload)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1)
    size_bytes: int = Field(0, ge=0)
    mime_type: str | None = None
    data: bytes = Field(default=b"", repr=False)


class TextSubmission(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    content: str = ""


class MediaSubmission(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["video", "audio"]
    file: MediaFile | None = None


Submission = Annotated[Union[TextSubmission, MediaSubmission], Field(discriminator="kind")]


@dataclass(frozen=True)
class Stage:
    name: str
    ordinal: int
    label: str


PIPELINE_STAGES: tuple[Stage, ...] = (
    Stage("dispatch", 0, "Sending to analysis server..."),
    Stage("cross-reference", 1, "Cross-referencing fraud database..."),
    Stage("pattern-analysis", 2, "Running AI pattern analysis..."),
    Stage("report-generation", 3, "Generating risk report..."),
)


class RiskTier(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

    @property
    def headline(self) -> str:
        return _HEADLINES[self]


_HEADLINES = {
    RiskTier.LOW: "Likely Safe",
    RiskTier.MEDIUM: "Be Cautious",
    RiskTier.HIGH: "High Danger",
}


class ScorePair(BaseModel):
    model_config = ConfigDict(frozen=True)

    fake_score: int = Field(..., ge=0, le=100)
    real_score: int = Field(..., ge=0, le=100)

    @model_validator(mode="after")
    def _ensure_complementary(self) -> "ScorePair":
        if self.fake_score + self.real_score != 100:
            raise ValueError("fake_score and real_score must sum to 100")
        return self


class AnalysisResult(ScorePair):
    risk: RiskTier
    verdict: str
    explanations: list[str] = Field(..., min_length=1)


class RunStatus(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCEEDED, RunStatus.FAILED)


class RunError(BaseModel):
    code: EngineErrorCode
    message: str


class AnalysisRun(BaseModel):
    id: str
    session_id: str
    kind: SubmissionKind
    submission: Optional[Submission] = Field(default=None, exclude=True, repr=False)
    status: RunStatus = RunStatus.VALIDATING
    current_stage_index: int = 0
    stage_count: int = len(PIPELINE_STAGES)
    result: AnalysisResult | None = None
    error: RunError | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: datetime | None = None
    processing_time: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress(self) -> float:
        if self.status is RunStatus.SUCCEEDED:
            return 1.0
        return round(self.current_stage_index / self.stage_count, 3)
