"""
Interpreter pipeline for InfoRx.

Owns the InterpreterState of one UI context and sequences
normalizer -> interpretation client, plus the independent
speech synthesis step.

States: IDLE -> LOADING -> {SUCCEEDED, FAILED}. SUCCEEDED and FAILED
may go back to LOADING on a new submission; reset() returns to IDLE.

Concurrency is asyncio single-threaded. The only suspension points
are the two outbound client calls. At most one interpretation is in
flight: submit() checks and sets is_loading before its first await
and rejects callers while it is set. Each interpretation and audio
request carries a generation number; a response whose generation is
no longer current (after reset, close, or a newer audio request) is
discarded instead of applied.
"""

from typing import Optional, Tuple, Union

from app.core.examples import EXAMPLE_SNIPPETS, get_example
from app.core.exceptions import (
    PipelineError,
    SynthesisError,
    SynthesisErrorCause,
)
from app.core.input_normalizer import normalize, resolve_language
from app.core.interpretation_client import InterpretationClient
from app.core.speech_client import SpeechSynthesisClient
from app.models.schemas import (
    AudioState,
    ExampleSnippet,
    InterpreterResult,
    InterpreterState,
    Language,
    PipelineStatus,
)
from app.services.activity_logger import ActionContext, Actions, log_action
from app.utils.logger import get_logger

logger = get_logger("interpreter_pipeline")

UNEXPECTED_ERROR_MESSAGE = (
    "Something went wrong while interpreting your text. Please try again."
)


class InterpreterPipeline:
    """
    State machine behind the medical interpreter.

    One instance per UI context; instances share nothing. Errors from
    the normalizer and both clients are recovered here and surfaced as
    state (``state.error`` for interpretation, ``audio.error`` for
    synthesis). Nothing is retried automatically.
    """

    def __init__(
        self,
        interpretation_client: Optional[InterpretationClient] = None,
        speech_client: Optional[SpeechSynthesisClient] = None,
        max_input_length: Optional[int] = None
    ):
        self.interpretation_client = interpretation_client or InterpretationClient()
        self.speech_client = speech_client or SpeechSynthesisClient()
        self.max_input_length = max_input_length

        self.state = InterpreterState()
        self.audio = AudioState()

        self._interpretation_generation = 0
        self._audio_generation = 0
        self._closed = False

    @property
    def status(self) -> PipelineStatus:
        return self.state.status

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def examples(self) -> Tuple[ExampleSnippet, ...]:
        return EXAMPLE_SNIPPETS

    # =========================================================================
    # Interpretation
    # =========================================================================

    async def submit(
        self,
        text: str,
        language: Union[str, Language],
        context: Optional[ActionContext] = None
    ) -> bool:
        """
        Interpret raw medical text.

        Args:
            text: Raw text as entered by the user
            language: Target language
            context: Caller identity for action logging

        Returns:
            False if the submission was rejected (one already in flight,
            or the pipeline is closed), True otherwise. Outcome is in
            ``state``.
        """
        if self._closed:
            logger.warning("Submit on closed pipeline ignored")
            return False

        if self.state.is_loading:
            logger.info("Submit rejected, interpretation already in flight")
            return False

        self._interpretation_generation += 1
        generation = self._interpretation_generation

        self.state.input_text = text
        self.state.is_loading = True
        self.state.result = None
        self.state.error = None

        try:
            target_language = resolve_language(language)
            self.state.selected_language = target_language
            normalized = normalize(text, self.max_input_length)

            log_action(context, Actions.AI_INTERPRET, {
                "text_length": len(normalized),
                "language": target_language.value,
            })

            interpretation = await self.interpretation_client.interpret(
                normalized, target_language, context
            )
        except PipelineError as e:
            self._fail(generation, e.user_message, cause=e.cause.value, detail=e.message)
            return True
        except Exception as e:
            logger.error("Unexpected interpretation failure", error=str(e), exc_info=True)
            self._fail(generation, UNEXPECTED_ERROR_MESSAGE, cause="unexpected")
            return True

        if not self._is_current(generation):
            logger.info("Discarding stale interpretation response", generation=generation)
            return True

        self.state.result = InterpreterResult(
            interpretation=interpretation,
            original_text=normalized.text,
            language=target_language,
            document_type=normalized.document_type,
        )
        self.state.error = None
        self.state.is_loading = False

        logger.info(
            "Interpretation succeeded",
            language=target_language.value,
            actions=len(interpretation.recommended_actions),
            indicators=len(interpretation.medical_attention_indicators)
        )
        return True

    def _fail(self, generation: int, message: str, **log_fields) -> None:
        if not self._is_current(generation):
            logger.info("Discarding stale interpretation failure", generation=generation)
            return

        self.state.result = None
        self.state.error = message
        self.state.is_loading = False
        logger.warning("Interpretation failed", **log_fields)

    def _is_current(self, generation: int) -> bool:
        return not self._closed and generation == self._interpretation_generation

    def load_example(self, snippet_id: str) -> Optional[ExampleSnippet]:
        """Prefill the input with an example snippet."""
        snippet = get_example(snippet_id)
        if snippet is None or self._closed or self.state.is_loading:
            return None

        self.state.input_text = snippet.text
        self.state.error = None
        return snippet

    def reset(self) -> InterpreterState:
        """
        Return to IDLE, dropping any in-flight interpretation.

        The outbound request is not cancelled. Its response is discarded
        on arrival, so a submit made right after reset may briefly have a
        second request on the wire and the upstream still serves both.
        """
        if self._closed:
            return self.state

        self._interpretation_generation += 1
        self.state = InterpreterState(selected_language=self.state.selected_language)
        logger.debug("Pipeline reset")
        return self.state

    # =========================================================================
    # Speech synthesis
    # =========================================================================

    async def request_audio(
        self,
        summary: str,
        context: Optional[ActionContext] = None
    ) -> Optional[AudioState]:
        """
        Synthesize audio for a summary.

        Independent of the interpretation state: an audio failure never
        touches ``state``. A newer request supersedes this one.

        Returns:
            The AudioState this request produced, or None if the response
            was discarded (superseded, or the pipeline was closed).
        """
        if self._closed:
            logger.warning("Audio request on closed pipeline ignored")
            return None

        self._audio_generation += 1
        generation = self._audio_generation
        self.audio = AudioState(is_loading=True, summary=summary)

        try:
            if not summary or not summary.strip():
                raise SynthesisError(SynthesisErrorCause.EMPTY_INPUT)

            log_action(context, Actions.TEXT_TO_SPEECH, {"text_length": len(summary)})
            payload = await self.speech_client.synthesize(summary)
        except SynthesisError as e:
            outcome = AudioState(
                summary=summary,
                error=e.user_message,
                error_code=e.error_code
            )
            log_fields = {"cause": e.cause.value, "detail": e.message}
        except Exception as e:
            logger.error("Unexpected synthesis failure", error=str(e), exc_info=True)
            outcome = AudioState(
                summary=summary,
                error=SynthesisError.DEFAULT_USER_MESSAGE,
                error_code="UNEXPECTED"
            )
            log_fields = {"cause": "unexpected"}
        else:
            outcome = AudioState(summary=summary, payload=payload)
            log_fields = {}

        if self._closed or generation != self._audio_generation:
            logger.info("Discarding superseded audio response", generation=generation)
            return None

        self.audio = outcome
        if outcome.error:
            logger.warning("Audio synthesis failed", **log_fields)
        return outcome

    def reset_audio(self) -> AudioState:
        """Discard the current audio and any pending audio request."""
        if not self._closed:
            self._audio_generation += 1
            self.audio = AudioState()
        return self.audio

    # =========================================================================
    # Teardown
    # =========================================================================

    def close(self) -> None:
        """
        Mark the owning UI context as torn down.

        In-flight responses are discarded when they resolve and later
        triggers are ignored.
        """
        if self._closed:
            return
        self._closed = True
        self._interpretation_generation += 1
        self._audio_generation += 1
        logger.debug("Pipeline closed")
