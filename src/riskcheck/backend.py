"""
Client for a remote scoring backend.

Request:  ``{"kind": ..., "payload": ...}`` (text) or
          ``{"kind": ..., "reference": {...}, "payload": <base64>}`` (media)
Response: ``{"fakeScore": int, "realScore": int}`` or
          ``{"error": {"code": ..., "message": ...}}``
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from .errors import (
    EngineError,
    EngineErrorCode,
    EngineUnavailable,
    NetworkUnreachable,
    ScoringTimeout,
)
from .models import MediaSubmission, ScorePair, Submission, TextSubmission

logger = logging.getLogger(__name__)

_ERRORS_BY_CODE: dict[str, type[EngineError]] = {
    EngineErrorCode.ENGINE_UNAVAILABLE.value: EngineUnavailable,
    EngineErrorCode.NETWORK_UNREACHABLE.value: NetworkUnreachable,
    EngineErrorCode.TIMEOUT.value: ScoringTimeout,
}


def build_request(submission: Submission) -> dict[str, Any]:
    if isinstance(submission, TextSubmission):
        return {"kind": submission.kind, "payload": submission.content}
    if isinstance(submission, MediaSubmission):
        media = submission.file
        if media is None:
            raise EngineUnavailable(f"No {submission.kind} file attached to the run")
        return {
            "kind": submission.kind,
            "reference": {
                "name": media.name,
                "size_bytes": media.size_bytes,
                "mime_type": media.mime_type,
            },
            "payload": base64.b64encode(media.data).decode("ascii"),
        }
    raise EngineUnavailable(f"Cannot encode {type(submission).__name__} for the scoring backend")


def parse_response(data: Any) -> ScorePair:
    if not isinstance(data, dict):
        raise EngineUnavailable("Scoring backend returned an unexpected payload")
    error = data.get("error")
    if error:
        if isinstance(error, dict):
            code = str(error.get("code") or "")
            message = str(error.get("message") or "Scoring backend reported an error")
        else:
            code, message = "", str(error)
        raise _ERRORS_BY_CODE.get(code, EngineUnavailable)(message)
    try:
        return ScorePair(
            fake_score=data.get("fakeScore", data.get("fake_score")),
            real_score=data.get("realScore", data.get("real_score")),
        )
    except ValidationError as exc:
        raise EngineUnavailable(f"Scoring backend returned an invalid score pair: {exc.error_count()} error(s)") from exc


class RemoteScoringEngine:
    """Delegates scoring to an HTTP service; classification and explanations stay local."""

    def __init__(
        self,
        endpoint: str,
        *,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def score(self, submission: Submission) -> ScorePair:
        payload = build_request(submission)
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(self._endpoint, json=payload)
                response.raise_for_status()
            except httpx.TimeoutException as exc:
                logger.error("Scoring backend timeout: %s", self._endpoint)
                raise ScoringTimeout(f"Scoring backend did not answer within {self._timeout:g}s") from exc
            except httpx.HTTPStatusError as exc:
                logger.error("Scoring backend error status %d", exc.response.status_code)
                raise EngineUnavailable(
                    f"Scoring backend returned HTTP {exc.response.status_code}"
                ) from exc
            except httpx.TransportError as exc:
                logger.error("Scoring backend unreachable: %s", exc)
                raise NetworkUnreachable(
                    f"Cannot reach server. Is the scoring backend running at {self._endpoint}?"
                ) from exc

        try:
            data = response.json()
        except ValueError as exc:
            raise EngineUnavailable("Scoring backend returned a non-JSON response") from exc
        return parse_response(data)
