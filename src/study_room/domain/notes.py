"""Models for generated study notes and the generation lifecycle."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Definition(BaseModel):
    """Term and its definition."""

    term: str
    definition: str


class NoteRecord(BaseModel):
    """Study notes produced by the summarization service."""

    model_config = {"frozen": True}

    id: int | str | None = None
    created_at: datetime | None = None
    content: str = ""
    key_concepts: list[str] = Field(default_factory=list)
    definitions: list[Definition] = Field(default_factory=list)
    study_tips: list[str] = Field(default_factory=list)

    @field_validator("definitions", mode="before")
    @classmethod
    def _coerce_definitions(cls, value: object) -> object:
        if not isinstance(value, list):
            return value
        coerced: list[object] = []
        for entry in value:
            if isinstance(entry, str):
                coerced.append({"term": entry, "definition": entry})
            else:
                coerced.append(entry)
        return coerced

    @field_validator("key_concepts", "study_tips", "definitions", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value


class GenerationState(str, Enum):
    """Lifecycle of a note-generation request."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


IN_FLIGHT_STATES = {GenerationState.SUBMITTING, GenerationState.POLLING}


@dataclass(frozen=True)
class GenerationStatus:
    """Current generation state with an optional failure reason."""

    state: GenerationState = GenerationState.IDLE
    reason: str | None = None

    @property
    def in_flight(self) -> bool:
        return self.state in IN_FLIGHT_STATES


@dataclass(frozen=True)
class GenerationOutcome:
    """Response of a generation submission."""

    accepted: bool
    payload: dict[str, object]
