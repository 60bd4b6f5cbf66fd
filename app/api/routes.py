"""
API routes for InfoRx Interpreter.

Exposes the interpreter pipeline to the UI (one session per UI
context) and hosts the interpretation capability the pipeline calls.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response

from app.api.middleware import client_address, limiter
from app.config import settings
from app.core.examples import EXAMPLE_SNIPPETS
from app.core.exceptions import InputError, SynthesisErrorCause
from app.core.input_normalizer import normalize
from app.models.schemas import (
    AudioRequest,
    AudioStatus,
    ErrorResponse,
    ExampleSnippet,
    HealthResponse,
    InterpretRequest,
    MedicalInterpretation,
    SessionResponse,
    SubmitRequest,
)
from app.services.activity_logger import ActionContext
from app.services.medical_interpreter import MedicalInterpreter, get_medical_interpreter
from app.services.session_store import InterpreterSession, SessionStore, session_store
from app.utils.logger import get_logger

logger = get_logger("routes")

router = APIRouter()

AUDIO_ERROR_STATUS = {
    SynthesisErrorCause.EMPTY_INPUT.value.upper(): 400,
    SynthesisErrorCause.NOT_CONFIGURED.value.upper(): 503,
    SynthesisErrorCause.TIMEOUT.value.upper(): 504,
    SynthesisErrorCause.UPSTREAM_STATUS.value.upper(): 502,
    SynthesisErrorCause.NETWORK_FAILURE.value.upper(): 502,
}


def get_session_store() -> SessionStore:
    return session_store


def get_interpreter() -> MedicalInterpreter:
    return get_medical_interpreter()


def get_action_context(request: Request) -> ActionContext:
    """Build the explicit caller context handed to the pipeline."""
    return ActionContext(
        user_id=getattr(request.state, "user_id", None),
        request_id=getattr(request.state, "request_id", None),
        client_ip=client_address(request)
    )


def get_interpreter_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store)
) -> InterpreterSession:
    session = store.get_session(session_id)
    if session is None:
        raise HTTPException(
            status_code=404,
            detail=f"Session not found: {session_id}. Please start a new session."
        )
    return session


def session_response(session: InterpreterSession, accepted=None) -> SessionResponse:
    pipeline = session.pipeline
    return SessionResponse(
        session_id=session.session_id,
        state=pipeline.state,
        audio=AudioStatus.from_state(pipeline.audio),
        accepted=accepted
    )


# =============================================================================
# Health Check
# =============================================================================

@router.get(
    "/health",
    response_model=HealthResponse,
    tags=["System"],
    summary="Health check endpoint"
)
async def health_check():
    """Check if the service is healthy and running."""
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        speech_configured=settings.speech_configured
    )


# =============================================================================
# Examples
# =============================================================================

@router.get(
    "/examples",
    response_model=List[ExampleSnippet],
    tags=["Interpreter"],
    summary="Example snippets for prefilling the input"
)
async def list_examples():
    return list(EXAMPLE_SNIPPETS)


# =============================================================================
# Interpreter Sessions
# =============================================================================

@router.post(
    "/sessions",
    response_model=SessionResponse,
    tags=["Interpreter"],
    summary="Start an interpreter session"
)
async def create_session(
    request: Request,
    store: SessionStore = Depends(get_session_store)
):
    """
    Start a new interpreter session.

    Each browser tab or UI context should hold its own session; sessions
    share no state.
    """
    session = store.create_session(user_id=getattr(request.state, "user_id", None))
    return session_response(session)


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    tags=["Interpreter"],
    summary="Get interpreter state",
    responses={404: {"model": ErrorResponse, "description": "Session not found"}}
)
async def get_session(session: InterpreterSession = Depends(get_interpreter_session)):
    return session_response(session)


@router.post(
    "/sessions/{session_id}/submit",
    response_model=SessionResponse,
    tags=["Interpreter"],
    summary="Interpret medical text",
    responses={
        404: {"model": ErrorResponse, "description": "Session not found"},
        409: {"model": ErrorResponse, "description": "Interpretation already in progress"}
    }
)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def submit_text(
    request: Request,
    body: SubmitRequest,
    session: InterpreterSession = Depends(get_interpreter_session),
    context: ActionContext = Depends(get_action_context)
):
    """
    Submit a prescription, lab result or scan summary for interpretation.

    Input and interpretation failures are reported in ``state.error``;
    the request itself still succeeds.
    """
    accepted = await session.pipeline.submit(body.text, body.language, context)
    if not accepted:
        raise HTTPException(
            status_code=409,
            detail="An interpretation is already in progress. Please wait for it to finish."
        )

    logger.info(
        "Submission processed",
        session_id=session.session_id,
        status=session.pipeline.status.value
    )
    return session_response(session, accepted=True)


@router.post(
    "/sessions/{session_id}/examples/{snippet_id}",
    response_model=SessionResponse,
    tags=["Interpreter"],
    summary="Prefill the input with an example"
)
async def load_example(
    snippet_id: str,
    session: InterpreterSession = Depends(get_interpreter_session)
):
    if session.pipeline.state.is_loading:
        raise HTTPException(status_code=409, detail="An interpretation is in progress.")

    if session.pipeline.load_example(snippet_id) is None:
        raise HTTPException(status_code=404, detail=f"Example not found: {snippet_id}")

    return session_response(session)


@router.post(
    "/sessions/{session_id}/reset",
    response_model=SessionResponse,
    tags=["Interpreter"],
    summary="Clear input, result and error"
)
async def reset_session(session: InterpreterSession = Depends(get_interpreter_session)):
    session.pipeline.reset()
    session.pipeline.reset_audio()
    return session_response(session)


@router.delete(
    "/sessions/{session_id}",
    status_code=204,
    tags=["Interpreter"],
    summary="Close an interpreter session"
)
async def close_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store)
):
    """Close a session; responses still in flight are discarded."""
    if not store.close_session(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return Response(status_code=204)


# =============================================================================
# Audio
# =============================================================================

@router.post(
    "/sessions/{session_id}/audio",
    tags=["Audio"],
    summary="Read a summary aloud",
    responses={
        200: {"content": {"audio/mpeg": {}}, "description": "Synthesized audio"},
        409: {"model": ErrorResponse, "description": "Superseded by a newer request"},
        502: {"model": ErrorResponse, "description": "Audio service error"},
        503: {"model": ErrorResponse, "description": "Audio not configured"},
        504: {"model": ErrorResponse, "description": "Audio service timed out"}
    }
)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def request_audio(
    request: Request,
    body: AudioRequest,
    session: InterpreterSession = Depends(get_interpreter_session),
    context: ActionContext = Depends(get_action_context)
):
    """
    Synthesize spoken audio for a summary, usually the simple explanation.

    Audio failures never affect the interpretation result.
    """
    outcome = await session.pipeline.request_audio(body.summary, context)

    if outcome is None:
        raise HTTPException(
            status_code=409,
            detail="This audio request was replaced by a newer one."
        )

    if outcome.error:
        raise HTTPException(
            status_code=AUDIO_ERROR_STATUS.get(outcome.error_code, 500),
            detail=outcome.error
        )

    return Response(
        content=outcome.payload.data,
        media_type=outcome.payload.content_type,
        headers={"Cache-Control": "private, max-age=3600"}
    )


@router.get(
    "/sessions/{session_id}/audio",
    tags=["Audio"],
    summary="Replay the latest audio"
)
async def get_audio(session: InterpreterSession = Depends(get_interpreter_session)):
    payload = session.pipeline.audio.payload
    if payload is None:
        raise HTTPException(status_code=404, detail="No audio available for this session.")

    return Response(content=payload.data, media_type=payload.content_type)


# =============================================================================
# Interpretation capability
# =============================================================================

@router.post(
    "/api/interpret",
    response_model=MedicalInterpretation,
    tags=["Capability"],
    summary="Interpret medical text into the structured shape",
    responses={400: {"model": ErrorResponse, "description": "Invalid input"}}
)
@limiter.limit(f"{settings.rate_limit_per_minute}/minute")
async def interpret_text(
    request: Request,
    body: InterpretRequest,
    interpreter: MedicalInterpreter = Depends(get_interpreter)
):
    """
    Interpretation capability called by the interpreter pipeline.

    **This is NOT a diagnostic tool.** Output is informational only.
    """
    try:
        normalized = normalize(body.text)
    except InputError as e:
        raise HTTPException(status_code=400, detail=e.user_message)

    return await interpreter.interpret(normalized.text, body.language)
