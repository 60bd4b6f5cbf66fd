"""
Client for the external interpretation capability.

Sends normalized text plus the target language and validates the
reply against MedicalInterpretation. There is no retry and no cache;
identical inputs issue identical new requests.
"""

from typing import Dict, Optional

import httpx
from pydantic import ValidationError

from app.config import settings
from app.core.exceptions import InterpretationError, InterpretationErrorCause
from app.core.input_normalizer import NormalizedText
from app.models.schemas import Language, MedicalInterpretation
from app.services.activity_logger import ActionContext
from app.utils.logger import get_logger

logger = get_logger("interpretation_client")


def forwarded_headers(context: Optional[ActionContext]) -> Dict[str, str]:
    """Identity headers for a call made on behalf of an end user."""
    if context is None:
        return {}

    headers = {
        "X-User-ID": context.user_id,
        "X-Request-ID": context.request_id,
        "X-Forwarded-For": context.client_ip,
    }
    return {name: value for name, value in headers.items() if value}


class InterpretationClient:
    """
    Issues one outbound interpretation request per call.

    An httpx.AsyncClient may be injected (tests pass one built on
    httpx.MockTransport); otherwise a short-lived client is opened
    for each request.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.url = url or settings.interpretation_url
        self.timeout = timeout if timeout is not None else settings.interpretation_timeout_seconds
        self._http_client = http_client

    async def interpret(
        self,
        text: NormalizedText,
        language: Language,
        context: Optional[ActionContext] = None
    ) -> MedicalInterpretation:
        """
        Interpret normalized medical text.

        Args:
            text: Output of the input normalizer
            language: Target language for the interpretation
            context: Caller identity, forwarded so the capability can rate
                limit per user rather than per calling host

        Returns:
            Validated MedicalInterpretation

        Raises:
            InterpretationError: UPSTREAM_STATUS, MALFORMED_RESPONSE,
                TIMEOUT or NETWORK_FAILURE
        """
        payload = {"text": str(text), "language": language.value}
        headers = forwarded_headers(context)

        logger.info(
            "Requesting interpretation",
            language=language.value,
            text_length=len(text),
            document_type=text.document_type.value if text.document_type else None
        )

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self.url, json=payload, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Interpretation request timed out", timeout=self.timeout)
            raise InterpretationError(
                InterpretationErrorCause.TIMEOUT,
                f"no response within {self.timeout}s"
            ) from e
        except httpx.TransportError as e:
            logger.warning("Interpretation request failed", error=str(e))
            raise InterpretationError(
                InterpretationErrorCause.NETWORK_FAILURE, str(e)
            ) from e

        if not response.is_success:
            logger.warning(
                "Interpretation capability returned an error",
                status_code=response.status_code
            )
            raise InterpretationError(
                InterpretationErrorCause.UPSTREAM_STATUS,
                f"upstream status {response.status_code}",
                status_code=response.status_code
            )

        return self._parse_interpretation(response)

    def _parse_interpretation(self, response: httpx.Response) -> MedicalInterpretation:
        """Validate a success body; missing fields are never defaulted."""
        try:
            interpretation = MedicalInterpretation.model_validate_json(response.content)
        except ValidationError as e:
            logger.warning(
                "Malformed interpretation payload",
                errors=[
                    {"loc": list(err["loc"]), "type": err["type"]}
                    for err in e.errors()
                ]
            )
            raise InterpretationError(
                InterpretationErrorCause.MALFORMED_RESPONSE,
                f"payload failed validation with {e.error_count()} error(s)",
                status_code=response.status_code
            ) from e

        logger.info(
            "Interpretation received",
            actions=len(interpretation.recommended_actions),
            indicators=len(interpretation.medical_attention_indicators)
        )
        return interpretation
