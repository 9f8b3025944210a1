"""
Inference Client - HTTP client for the chatbot inference endpoint.
"""
import logging
from typing import Optional
import httpx

from widget_engine.core.config import Settings, get_settings
from widget_engine.core.errors import InferenceRequestError
from widget_engine.models.inference import (
    InferenceMalformed,
    InferenceRequest,
    InferenceSuccess,
    parse_inference_payload,
)

logger = logging.getLogger(__name__)


class InferenceClient:
    """Sends visitor messages to the inference endpoint and validates replies."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        settings = settings or get_settings()
        self.url = settings.inference_url
        self.timeout = settings.inference_timeout_seconds
        self._client = client

    async def send(self, request: InferenceRequest) -> InferenceSuccess:
        """
        POST the message and return the validated reply.

        Raises:
            InferenceRequestError: non-2xx status, transport failure, timeout,
                undecodable body or a body that fails the response schema
        """
        try:
            if self._client is not None:
                response = await self._post(self._client, request)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, request)
        except httpx.TimeoutException as e:
            logger.error(f"Inference request timed out after {self.timeout}s: {e}")
            raise InferenceRequestError(f"Inference request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.error(f"Inference transport error: {e}")
            raise InferenceRequestError(f"Inference transport error: {e}") from e

        if not response.is_success:
            logger.error(f"Inference endpoint returned {response.status_code}: {response.text[:200]}")
            raise InferenceRequestError(
                f"Inference endpoint returned {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            logger.error(f"Inference response is not JSON: {e}")
            raise InferenceRequestError("Inference response is not JSON") from e

        outcome = parse_inference_payload(payload)
        if isinstance(outcome, InferenceMalformed):
            logger.error(f"Malformed inference response: {outcome.reason}")
            raise InferenceRequestError(f"Malformed inference response: {outcome.reason}")

        logger.info(
            f"Inference reply - Intent: {outcome.intent}, "
            f"Confidence: {outcome.confidence}, Lead score: {outcome.lead_score}"
        )
        return outcome

    async def _post(self, client: httpx.AsyncClient, request: InferenceRequest) -> httpx.Response:
        return await client.post(
            self.url,
            json=request.to_payload(),
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
