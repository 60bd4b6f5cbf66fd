"""
Pydantic schemas for InfoRx Interpreter.

Defines the pipeline data model and the request/response models
for all API endpoints.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List

from pydantic import BaseModel, Field, ConfigDict, computed_field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Enums
# =============================================================================

class Language(str, Enum):
    """Target language for interpretations."""
    ENGLISH = "english"
    PIDGIN = "pidgin"

    @property
    def display_name(self) -> str:
        """Name used when instructing the interpretation model."""
        return {
            Language.ENGLISH: "English",
            Language.PIDGIN: "Nigerian Pidgin",
        }[self]

    @classmethod
    def _missing_(cls, value):
        # Accept display names and any casing ("English", "Nigerian Pidgin")
        if isinstance(value, str):
            lookup = value.strip().lower()
            for member in cls:
                if lookup in (member.value, member.display_name.lower()):
                    return member
        return None


class DocumentType(str, Enum):
    """Kinds of medical documents the interpreter is tuned for."""
    PRESCRIPTION = "prescription"
    LAB_RESULT = "lab_result"
    SCAN_SUMMARY = "scan_summary"


class PipelineStatus(str, Enum):
    """Named states of the interpreter pipeline."""
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# =============================================================================
# Interpretation Models
# =============================================================================

class MedicalInterpretation(BaseModel):
    """Structured, plain-language breakdown of a medical document."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    simple_explanation: str = Field(
        alias="simpleExplanation",
        description="What the document means, in plain language"
    )
    recommended_actions: List[str] = Field(
        alias="recommendedActions",
        description="Practical next steps for the patient"
    )
    medical_attention_indicators: List[str] = Field(
        alias="medicalAttentionIndicators",
        description="Warning signs that need a doctor"
    )


class InterpreterResult(BaseModel):
    """A completed interpretation. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    interpretation: MedicalInterpretation
    original_text: str = Field(description="Normalized text that was interpreted")
    language: Language = Field(description="Language requested for this result")
    timestamp: datetime = Field(
        default_factory=utcnow,
        description="When the interpretation completed"
    )
    document_type: Optional[DocumentType] = Field(
        default=None,
        description="Document type hint resolved from the input"
    )


class ExampleSnippet(BaseModel):
    """Read-only example text used to prefill the interpreter input."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    text: str
    type: DocumentType


class InterpreterState(BaseModel):
    """Interpretation state owned by a single UI context."""

    input_text: str = ""
    selected_language: Language = Language.ENGLISH
    is_loading: bool = False
    result: Optional[InterpreterResult] = None
    error: Optional[str] = None

    @computed_field
    @property
    def status(self) -> PipelineStatus:
        if self.is_loading:
            return PipelineStatus.LOADING
        if self.result is not None:
            return PipelineStatus.SUCCEEDED
        if self.error is not None:
            return PipelineStatus.FAILED
        return PipelineStatus.IDLE


# =============================================================================
# Audio Models
# =============================================================================

@dataclass(frozen=True)
class AudioPayload:
    """Opaque audio produced by speech synthesis for one summary."""

    data: bytes
    summary: str
    content_type: str = "audio/mpeg"

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class AudioState:
    """Audio signal kept apart from InterpreterState."""

    is_loading: bool = False
    summary: Optional[str] = None
    payload: Optional[AudioPayload] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


class AudioStatus(BaseModel):
    """Serializable view of AudioState (without the audio bytes)."""

    is_loading: bool
    summary: Optional[str] = None
    has_audio: bool = False
    content_type: Optional[str] = None
    size_bytes: Optional[int] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    @classmethod
    def from_state(cls, state: AudioState) -> "AudioStatus":
        payload = state.payload
        return cls(
            is_loading=state.is_loading,
            summary=state.summary,
            has_audio=payload is not None,
            content_type=payload.content_type if payload else None,
            size_bytes=payload.size_bytes if payload else None,
            error=state.error,
            error_code=state.error_code,
        )


# =============================================================================
# Requests
# =============================================================================

class SubmitRequest(BaseModel):
    """Submit raw medical text for interpretation."""

    text: str = Field(description="Prescription, lab result or scan summary")
    language: Language = Field(
        default=Language.ENGLISH,
        description="Language of the interpretation"
    )

    @field_validator("language", mode="before")
    @classmethod
    def coerce_language(cls, value):
        return Language(value) if isinstance(value, str) else value


class AudioRequest(BaseModel):
    """Request spoken audio for a summary."""

    summary: str = Field(description="Text to read aloud")


class InterpretRequest(BaseModel):
    """Request body accepted by the hosted interpretation capability."""

    text: str = Field(min_length=1, description="Normalized medical text")
    language: Language = Field(description="Language of the interpretation")

    @field_validator("language", mode="before")
    @classmethod
    def coerce_language(cls, value):
        return Language(value) if isinstance(value, str) else value


# =============================================================================
# Responses
# =============================================================================

class SessionResponse(BaseModel):
    """State of one interpreter session."""

    session_id: str = Field(description="Interpreter session ID")
    state: InterpreterState
    audio: AudioStatus
    accepted: Optional[bool] = Field(
        default=None,
        description="Whether the last trigger was accepted"
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(default="healthy")
    version: str = Field(description="Application version")
    timestamp: datetime = Field(default_factory=utcnow)
    speech_configured: bool = Field(default=False)


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(description="Error type")
    message: str = Field(description="Human-readable error message")
    error_code: str = Field(description="Machine-readable error code")
    request_id: Optional[str] = Field(default=None, description="Request ID for support")
    timestamp: datetime = Field(default_factory=utcnow)
