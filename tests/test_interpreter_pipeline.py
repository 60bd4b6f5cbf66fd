"""
Tests for the interpreter pipeline state machine.
"""

import asyncio
from datetime import datetime, timezone

import httpx
import pytest

from app.models.schemas import Language, PipelineStatus
from app.services.activity_logger import ActionContext
from app.services.interpreter_pipeline import InterpreterPipeline

from conftest import FAKE_AUDIO, RecordingHandler, interpretation_client, speech_client


AMOXICILLIN = "Take 500mg amoxicillin three times daily"


def make_pipeline(interpretation_handler, speech_handler=None, **kwargs) -> InterpreterPipeline:
    speech_handler = speech_handler or RecordingHandler(
        lambda request: httpx.Response(200, content=FAKE_AUDIO)
    )
    return InterpreterPipeline(
        interpretation_client=interpretation_client(interpretation_handler),
        speech_client=speech_client(speech_handler),
        **kwargs
    )


def failing_speech(status_code=401) -> RecordingHandler:
    return RecordingHandler(
        lambda request: httpx.Response(status_code, json={"detail": "Unauthorized"})
    )


class TestInitialState:
    """Test the IDLE state."""

    def test_starts_idle(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)

        assert pipeline.status == PipelineStatus.IDLE
        assert pipeline.state.result is None
        assert pipeline.state.error is None
        assert pipeline.state.is_loading is False
        assert pipeline.audio.payload is None

    def test_examples_available(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)
        assert {snippet.id for snippet in pipeline.examples} == {
            "prescription", "lab_result", "scan_summary"
        }


class TestSubmit:
    """Test interpretation submissions."""

    @pytest.mark.asyncio
    async def test_successful_interpretation(self, interpretation_ok):
        """Scenario: amoxicillin prescription in English."""
        pipeline = make_pipeline(interpretation_ok)

        accepted = await pipeline.submit(AMOXICILLIN, "english")

        assert accepted is True
        assert pipeline.status == PipelineStatus.SUCCEEDED
        assert pipeline.state.is_loading is False
        assert pipeline.state.error is None

        result = pipeline.state.result
        assert result.language == Language.ENGLISH
        assert len(result.interpretation.recommended_actions) == 2
        assert result.original_text == AMOXICILLIN

    @pytest.mark.asyncio
    async def test_result_language_matches_request(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)
        await pipeline.submit(AMOXICILLIN, Language.PIDGIN)

        assert pipeline.state.result.language == Language.PIDGIN
        assert pipeline.state.selected_language == Language.PIDGIN
        assert interpretation_ok.last_json()["language"] == "pidgin"

    @pytest.mark.asyncio
    async def test_timestamp_assigned_on_completion(self, interpretation_ok):
        gate = interpretation_ok.pause()
        pipeline = make_pipeline(interpretation_ok)

        task = asyncio.create_task(pipeline.submit(AMOXICILLIN, "english"))
        await asyncio.sleep(0.01)
        released_at = datetime.now(timezone.utc)
        gate.set()
        await task

        assert pipeline.state.result.timestamp >= released_at

    @pytest.mark.asyncio
    async def test_upstream_error_fails(self):
        """Scenario: interpretation capability returns HTTP 500."""
        handler = RecordingHandler(lambda request: httpx.Response(500))
        pipeline = make_pipeline(handler)

        await pipeline.submit(AMOXICILLIN, "english")

        assert pipeline.status == PipelineStatus.FAILED
        assert pipeline.state.error
        assert pipeline.state.result is None
        assert pipeline.state.is_loading is False

    @pytest.mark.asyncio
    async def test_empty_input_never_reaches_client(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)

        await pipeline.submit("   \n ", "english")

        assert pipeline.status == PipelineStatus.FAILED
        assert pipeline.state.error
        assert interpretation_ok.calls == 0

    @pytest.mark.asyncio
    async def test_too_long_input_never_reaches_client(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok, max_input_length=10)

        await pipeline.submit("x" * 11, "english")

        assert pipeline.status == PipelineStatus.FAILED
        assert "10" in pipeline.state.error
        assert interpretation_ok.calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_language_fails(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)

        await pipeline.submit(AMOXICILLIN, "klingon")

        assert pipeline.status == PipelineStatus.FAILED
        assert interpretation_ok.calls == 0

    @pytest.mark.asyncio
    async def test_malformed_response_fails(self):
        handler = RecordingHandler(
            lambda request: httpx.Response(200, json={"simpleExplanation": "Partial"})
        )
        pipeline = make_pipeline(handler)

        await pipeline.submit(AMOXICILLIN, "english")

        assert pipeline.status == PipelineStatus.FAILED
        assert pipeline.state.result is None

    @pytest.mark.asyncio
    async def test_failure_then_success(self):
        """FAILED is not terminal."""
        responses = iter([
            httpx.Response(500),
            httpx.Response(200, json={
                "simpleExplanation": "ok",
                "recommendedActions": [],
                "medicalAttentionIndicators": [],
            }),
        ])
        pipeline = make_pipeline(RecordingHandler(lambda request: next(responses)))

        await pipeline.submit(AMOXICILLIN, "english")
        assert pipeline.status == PipelineStatus.FAILED

        await pipeline.submit(AMOXICILLIN, "english")
        assert pipeline.status == PipelineStatus.SUCCEEDED
        assert pipeline.state.error is None

    @pytest.mark.asyncio
    async def test_new_submission_clears_previous_result(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)
        await pipeline.submit(AMOXICILLIN, "english")

        gate = interpretation_ok.pause()
        task = asyncio.create_task(pipeline.submit("Metformin 500mg", "english"))
        await asyncio.sleep(0.01)

        assert pipeline.status == PipelineStatus.LOADING
        assert pipeline.state.result is None
        assert pipeline.state.error is None

        gate.set()
        await task
        assert pipeline.state.result.original_text == "Metformin 500mg"

    @pytest.mark.asyncio
    async def test_accepts_action_context(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)
        context = ActionContext(user_id="user-1", request_id="req-1", client_ip="203.0.113.7")

        assert await pipeline.submit(AMOXICILLIN, "english", context) is True

        headers = interpretation_ok.requests[0].headers
        assert headers["X-User-ID"] == "user-1"
        assert headers["X-Request-ID"] == "req-1"
        assert headers["X-Forwarded-For"] == "203.0.113.7"


class TestSingleFlight:
    """Only one interpretation may be in flight."""

    @pytest.mark.asyncio
    async def test_concurrent_submit_rejected(self, interpretation_ok):
        gate = interpretation_ok.pause()
        pipeline = make_pipeline(interpretation_ok)

        first = asyncio.create_task(pipeline.submit(AMOXICILLIN, "english"))
        await asyncio.sleep(0.01)
        assert pipeline.state.is_loading is True

        second = await pipeline.submit("Another prescription", "pidgin")

        assert second is False
        assert interpretation_ok.calls == 1
        assert pipeline.state.input_text == AMOXICILLIN
        assert pipeline.state.result is None
        assert pipeline.state.error is None

        gate.set()
        assert await first is True
        assert pipeline.state.result.language == Language.ENGLISH

    @pytest.mark.asyncio
    async def test_pipelines_are_independent(self, interpretation_ok):
        gate = interpretation_ok.pause()
        first = make_pipeline(interpretation_ok)
        second = make_pipeline(interpretation_ok)

        task = asyncio.create_task(first.submit(AMOXICILLIN, "english"))
        await asyncio.sleep(0.01)
        other = asyncio.create_task(second.submit(AMOXICILLIN, "english"))
        await asyncio.sleep(0.01)

        assert interpretation_ok.calls == 2
        gate.set()
        assert await task is True
        assert await other is True


class TestReset:
    """Test reset from every state."""

    @pytest.mark.asyncio
    async def test_reset_after_success(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)
        await pipeline.submit(AMOXICILLIN, "english")

        state = pipeline.reset()

        assert state.input_text == ""
        assert state.result is None
        assert state.error is None
        assert state.is_loading is False
        assert pipeline.status == PipelineStatus.IDLE

    @pytest.mark.asyncio
    async def test_reset_after_failure(self):
        pipeline = make_pipeline(RecordingHandler(lambda request: httpx.Response(500)))
        await pipeline.submit(AMOXICILLIN, "english")

        state = pipeline.reset()

        assert (state.input_text, state.result, state.error, state.is_loading) == ("", None, None, False)

    @pytest.mark.asyncio
    async def test_reset_while_loading_discards_response(self, interpretation_ok):
        gate = interpretation_ok.pause()
        pipeline = make_pipeline(interpretation_ok)

        task = asyncio.create_task(pipeline.submit(AMOXICILLIN, "english"))
        await asyncio.sleep(0.01)

        state = pipeline.reset()
        assert (state.input_text, state.result, state.error, state.is_loading) == ("", None, None, False)

        gate.set()
        await task

        assert pipeline.status == PipelineStatus.IDLE
        assert pipeline.state.result is None

    @pytest.mark.asyncio
    async def test_submit_after_reset_while_loading(self, interpretation_ok):
        gate = interpretation_ok.pause()
        pipeline = make_pipeline(interpretation_ok)

        stale = asyncio.create_task(pipeline.submit(AMOXICILLIN, "english"))
        await asyncio.sleep(0.01)
        pipeline.reset()
        interpretation_ok.gate = None

        assert await pipeline.submit("Metformin 500mg", "english") is True
        assert interpretation_ok.calls == 2
        assert pipeline.state.result.original_text == "Metformin 500mg"

        gate.set()
        await stale

        assert pipeline.state.result.original_text == "Metformin 500mg"
        assert pipeline.status == PipelineStatus.SUCCEEDED

    def test_reset_when_idle(self, interpretation_ok):
        state = make_pipeline(interpretation_ok).reset()
        assert (state.input_text, state.result, state.error, state.is_loading) == ("", None, None, False)


class TestAudio:
    """Test speech synthesis through the pipeline."""

    @pytest.mark.asyncio
    async def test_audio_success(self, interpretation_ok, speech_ok):
        pipeline = make_pipeline(interpretation_ok, speech_ok)

        outcome = await pipeline.request_audio("Take your medicine with food.")

        assert outcome is pipeline.audio
        assert outcome.payload.data == FAKE_AUDIO
        assert outcome.error is None
        assert outcome.is_loading is False

    @pytest.mark.asyncio
    async def test_audio_failure_is_separate(self, interpretation_ok):
        """Scenario: synthesis returns HTTP 401."""
        pipeline = make_pipeline(interpretation_ok, failing_speech(401))

        outcome = await pipeline.request_audio("Take your medicine with food.")

        assert outcome.error
        assert outcome.error_code == "UPSTREAM_STATUS"
        assert outcome.payload is None
        assert pipeline.state.error is None
        assert pipeline.status == PipelineStatus.IDLE

    @pytest.mark.asyncio
    async def test_audio_failure_keeps_result(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok, failing_speech(500))
        await pipeline.submit(AMOXICILLIN, "english")
        result = pipeline.state.result

        await pipeline.request_audio(result.interpretation.simple_explanation)

        assert pipeline.state.result is result
        assert pipeline.state.error is None
        assert pipeline.status == PipelineStatus.SUCCEEDED
        assert pipeline.audio.error

    @pytest.mark.asyncio
    async def test_empty_summary_not_sent(self, interpretation_ok, speech_ok):
        pipeline = make_pipeline(interpretation_ok, speech_ok)

        outcome = await pipeline.request_audio("  ")

        assert outcome.error_code == "EMPTY_INPUT"
        assert speech_ok.calls == 0

    @pytest.mark.asyncio
    async def test_newer_audio_request_supersedes(self, interpretation_ok):
        handler = RecordingHandler(lambda request: httpx.Response(200, content=FAKE_AUDIO))
        gate = handler.pause()
        pipeline = make_pipeline(interpretation_ok, handler)

        first = asyncio.create_task(pipeline.request_audio("first summary"))
        await asyncio.sleep(0.01)
        second = asyncio.create_task(pipeline.request_audio("second summary"))
        await asyncio.sleep(0.01)
        assert pipeline.audio.is_loading is True
        assert pipeline.audio.summary == "second summary"

        gate.set()
        first_outcome = await first
        second_outcome = await second

        assert first_outcome is None
        assert second_outcome is pipeline.audio
        assert pipeline.audio.summary == "second summary"
        assert pipeline.audio.payload.summary == "second summary"

    @pytest.mark.asyncio
    async def test_reset_audio(self, interpretation_ok, speech_ok):
        pipeline = make_pipeline(interpretation_ok, speech_ok)
        await pipeline.request_audio("Hello")

        state = pipeline.reset_audio()
        assert state.payload is None
        assert state.error is None


class TestClose:
    """Test teardown of the owning UI context."""

    @pytest.mark.asyncio
    async def test_in_flight_interpretation_discarded(self, interpretation_ok):
        gate = interpretation_ok.pause()
        pipeline = make_pipeline(interpretation_ok)

        task = asyncio.create_task(pipeline.submit(AMOXICILLIN, "english"))
        await asyncio.sleep(0.01)
        pipeline.close()
        gate.set()
        await task

        assert pipeline.state.result is None
        assert pipeline.state.error is None

    @pytest.mark.asyncio
    async def test_in_flight_audio_discarded(self, interpretation_ok, speech_ok):
        gate = speech_ok.pause()
        pipeline = make_pipeline(interpretation_ok, speech_ok)

        task = asyncio.create_task(pipeline.request_audio("Hello"))
        await asyncio.sleep(0.01)
        pipeline.close()
        gate.set()

        assert await task is None
        assert pipeline.audio.payload is None

    @pytest.mark.asyncio
    async def test_triggers_ignored_after_close(self, interpretation_ok, speech_ok):
        pipeline = make_pipeline(interpretation_ok, speech_ok)
        pipeline.close()

        assert await pipeline.submit(AMOXICILLIN, "english") is False
        assert await pipeline.request_audio("Hello") is None
        assert interpretation_ok.calls == 0
        assert speech_ok.calls == 0


class TestLoadExample:
    """Test prefilling from example snippets."""

    def test_load_example(self, interpretation_ok):
        pipeline = make_pipeline(interpretation_ok)

        snippet = pipeline.load_example("scan_summary")

        assert pipeline.state.input_text == snippet.text

    def test_unknown_example(self, interpretation_ok):
        assert make_pipeline(interpretation_ok).load_example("unknown") is None
