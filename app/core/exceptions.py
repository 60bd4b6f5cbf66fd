"""
Error taxonomy for the interpretation-and-synthesis pipeline.

Every failure the pipeline can produce is one of three kinds:

- InputError: raised by the input normalizer, never reaches the network
- InterpretationError: raised by the interpretation client
- SynthesisError: raised by the speech synthesis client

Each carries a machine-readable cause plus diagnostic detail (upstream
status code or text). ``user_message`` is what the UI shows; it never
mentions HTTP semantics.
"""

from enum import Enum
from typing import Optional


class InputErrorCause(str, Enum):
    EMPTY_INPUT = "empty_input"
    INPUT_TOO_LONG = "input_too_long"
    UNSUPPORTED_LANGUAGE = "unsupported_language"


class InterpretationErrorCause(str, Enum):
    UPSTREAM_STATUS = "upstream_status"
    MALFORMED_RESPONSE = "malformed_response"
    TIMEOUT = "timeout"
    NETWORK_FAILURE = "network_failure"


class SynthesisErrorCause(str, Enum):
    EMPTY_INPUT = "empty_input"
    UPSTREAM_STATUS = "upstream_status"
    TIMEOUT = "timeout"
    NETWORK_FAILURE = "network_failure"
    NOT_CONFIGURED = "not_configured"


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    USER_MESSAGES: dict = {}
    DEFAULT_USER_MESSAGE = "Something went wrong. Please try again."

    def __init__(self, cause: Enum, message: str, error_code: Optional[str] = None):
        self.cause = cause
        self.message = message
        self.error_code = error_code or cause.value.upper()
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        """Human-readable message safe to show to a non-clinical user."""
        return self.USER_MESSAGES.get(self.cause, self.DEFAULT_USER_MESSAGE)


class InputError(PipelineError):
    """Raised when raw input text fails structural validation."""

    USER_MESSAGES = {
        InputErrorCause.EMPTY_INPUT: "Please provide medical text to interpret.",
        InputErrorCause.INPUT_TOO_LONG: (
            "Your text is too long. Please shorten it and try again."
        ),
        InputErrorCause.UNSUPPORTED_LANGUAGE: (
            "Please choose English or Pidgin as the response language."
        ),
    }

    def __init__(
        self,
        cause: InputErrorCause,
        message: Optional[str] = None,
        max_length: Optional[int] = None
    ):
        self.max_length = max_length
        super().__init__(cause, message or cause.value.replace("_", " "))

    @property
    def user_message(self) -> str:
        if self.cause == InputErrorCause.INPUT_TOO_LONG and self.max_length:
            return (
                f"Your text is too long. Please keep it under "
                f"{self.max_length} characters and try again."
            )
        return super().user_message


class InterpretationError(PipelineError):
    """Raised when the interpretation capability cannot produce a result."""

    USER_MESSAGES = {
        InterpretationErrorCause.UPSTREAM_STATUS: (
            "The interpretation service could not process your text right now. "
            "Please try again in a moment."
        ),
        InterpretationErrorCause.MALFORMED_RESPONSE: (
            "We received an incomplete interpretation. Please try again."
        ),
        InterpretationErrorCause.TIMEOUT: (
            "The interpretation is taking too long. Please try again."
        ),
        InterpretationErrorCause.NETWORK_FAILURE: (
            "We could not reach the interpretation service. "
            "Please check your connection and try again."
        ),
    }

    def __init__(
        self,
        cause: InterpretationErrorCause,
        message: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        self.status_code = status_code
        super().__init__(cause, message or cause.value.replace("_", " "))


class SynthesisError(PipelineError):
    """Raised when the voice synthesis capability cannot produce audio."""

    USER_MESSAGES = {
        SynthesisErrorCause.EMPTY_INPUT: "There is no text to read aloud yet.",
        SynthesisErrorCause.UPSTREAM_STATUS: (
            "Audio playback is unavailable right now. You can still read "
            "the interpretation above."
        ),
        SynthesisErrorCause.TIMEOUT: (
            "Generating audio took too long. Please try again."
        ),
        SynthesisErrorCause.NETWORK_FAILURE: (
            "We could not reach the audio service. "
            "Please check your connection and try again."
        ),
        SynthesisErrorCause.NOT_CONFIGURED: (
            "Audio playback is not available on this server."
        ),
    }

    def __init__(
        self,
        cause: SynthesisErrorCause,
        message: Optional[str] = None,
        status_text: Optional[str] = None,
        status_code: Optional[int] = None
    ):
        self.status_text = status_text
        self.status_code = status_code
        super().__init__(cause, message or cause.value.replace("_", " "))
