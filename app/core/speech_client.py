"""
Client for the ElevenLabs text-to-speech capability.

Voice identity, model and voice settings are constants of the system.
The API key comes from settings and is never logged.
"""

from typing import Optional

import httpx

from app.config import settings
from app.core.exceptions import SynthesisError, SynthesisErrorCause
from app.models.schemas import AudioPayload
from app.utils.logger import get_logger

logger = get_logger("speech_client")


# Premium female voice with a Nigerian accent
VOICE_ID = "nw6EIXCsQ89uJMjytYb8"
MODEL_ID = "eleven_turbo_v2"
STABILITY = 0.5
SIMILARITY_BOOST = 0.75
DEFAULT_CONTENT_TYPE = "audio/mpeg"


class SpeechSynthesisClient:
    """Turns a plain-text summary into one complete audio payload."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        if api_key is None:
            api_key = settings.elevenlabs_api_key.get_secret_value()
        self._api_key = api_key
        self.base_url = (base_url or settings.elevenlabs_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.synthesis_timeout_seconds
        self._http_client = http_client

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/v1/text-to-speech/{VOICE_ID}"

    def build_request_body(self, summary: str) -> dict:
        return {
            "text": summary,
            "model_id": MODEL_ID,
            "voice_settings": {
                "stability": STABILITY,
                "similarity_boost": SIMILARITY_BOOST,
            },
        }

    async def synthesize(self, summary: str) -> AudioPayload:
        """
        Synthesize speech for a summary.

        Args:
            summary: Non-empty text to read aloud

        Returns:
            AudioPayload holding the full response body

        Raises:
            SynthesisError: EMPTY_INPUT, NOT_CONFIGURED, UPSTREAM_STATUS,
                TIMEOUT or NETWORK_FAILURE
        """
        if not summary or not summary.strip():
            raise SynthesisError(SynthesisErrorCause.EMPTY_INPUT)

        if not self.is_configured:
            logger.warning("Speech synthesis requested without an API key")
            raise SynthesisError(
                SynthesisErrorCause.NOT_CONFIGURED,
                "ELEVENLABS_API_KEY is not set"
            )

        headers = {
            "xi-api-key": self._api_key,
            "Content-Type": "application/json",
            "Accept": DEFAULT_CONTENT_TYPE,
        }
        body = self.build_request_body(summary)

        logger.info("Requesting speech synthesis", text_length=len(summary))

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.endpoint, json=body, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.endpoint, json=body, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Speech synthesis timed out", timeout=self.timeout)
            raise SynthesisError(
                SynthesisErrorCause.TIMEOUT,
                f"no response within {self.timeout}s"
            ) from e
        except httpx.TransportError as e:
            logger.warning("Speech synthesis request failed", error=str(e))
            raise SynthesisError(SynthesisErrorCause.NETWORK_FAILURE, str(e)) from e

        if not response.is_success:
            status_text = self._status_text(response)
            logger.warning(
                "Speech synthesis returned an error",
                status_code=response.status_code,
                status_text=status_text
            )
            raise SynthesisError(
                SynthesisErrorCause.UPSTREAM_STATUS,
                f"ElevenLabs API error: {response.status_code} - {status_text}",
                status_text=status_text,
                status_code=response.status_code
            )

        content_type = response.headers.get("content-type", DEFAULT_CONTENT_TYPE)
        payload = AudioPayload(
            data=response.content,
            summary=summary,
            content_type=content_type.split(";")[0].strip() or DEFAULT_CONTENT_TYPE
        )

        logger.info("Speech synthesized", size_bytes=payload.size_bytes)
        return payload

    @staticmethod
    def _status_text(response: httpx.Response) -> str:
        """Upstream error detail if the body carries one, else the reason phrase."""
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        except AttributeError:
            # JSON body that is not an object
            detail = None

        if isinstance(detail, dict):
            detail = detail.get("message") or detail.get("status")
        if isinstance(detail, str) and detail:
            return detail
        return response.reason_phrase
