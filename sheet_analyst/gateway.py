"""Gateway to the language model with a closed error taxonomy.

``AIGateway.ask`` never raises: every outcome, including configuration
problems, network failures and provider errors, comes back as a
``GatewayResult`` whose ``error_kind`` tells the caller what went wrong.
Two chat commands are answered locally without contacting the provider:
``/help`` and ``/clear``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional

import requests
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from .context import DEFAULT_SAMPLE_SIZE, build_context, build_statistics_context
from .dataset import DataSet
from .history import ConversationTurn
from .prompt import PromptPayload, build_prompt, to_contents
from .settings import Settings

logger = logging.getLogger(__name__)

API_ROOT = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_MODEL = "gemini-1.5-flash"

# Fixed sampling parameters; not exposed to users.
GENERATION_CONFIG: Dict[str, Any] = {
    "temperature": 0.7,
    "maxOutputTokens": 2048,
    "topP": 0.95,
    "topK": 40,
}

TRANSIENT_STATUS_CODES = frozenset({500, 502, 503, 504})

CLEAR_HISTORY = "clear_history"

HELP_TEXT = (
    "Ask questions about the loaded sheet in plain language, for example:\n"
    "  - Which region has the highest revenue?\n"
    "  - Summarise the trend in monthly sales.\n"
    "  - Are price and quantity correlated?\n"
    "Commands:\n"
    "  /help   show this message\n"
    "  /clear  forget the conversation so far"
)


class ErrorKind(Enum):
    MISSING_CREDENTIAL = "missing_credential"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    QUOTA_EXCEEDED = "quota_exceeded"
    EMPTY_RESPONSE = "empty_response"
    MALFORMED_RESPONSE = "malformed_response"
    PROVIDER_ERROR = "provider_error"
    NETWORK_ERROR = "network_error"
    UNEXPECTED_ERROR = "unexpected_error"
    INVALID_DATASET = "invalid_dataset"

    @property
    def message(self) -> str:
        """Human-readable explanation shown to the user."""
        return _MESSAGES[self]


_MESSAGES = {
    ErrorKind.MISSING_CREDENTIAL: (
        "No API key is configured. Set GEMINI_API_KEY (or GOOGLE_API_KEY) and try again."
    ),
    ErrorKind.BAD_REQUEST: (
        "The AI provider rejected the request. Check that your API key is valid."
    ),
    ErrorKind.UNAUTHORIZED: (
        "The API key does not have permission to use this model."
    ),
    ErrorKind.QUOTA_EXCEEDED: (
        "The API quota has been exhausted. Wait a moment or check your plan limits."
    ),
    ErrorKind.EMPTY_RESPONSE: "The AI provider returned an empty response. Try rephrasing the question.",
    ErrorKind.MALFORMED_RESPONSE: "The AI provider returned a response that could not be read.",
    ErrorKind.PROVIDER_ERROR: "The AI provider returned an error.",
    ErrorKind.NETWORK_ERROR: "Could not reach the AI provider. Check your connection and try again.",
    ErrorKind.UNEXPECTED_ERROR: "An unexpected error occurred while processing the request.",
    ErrorKind.INVALID_DATASET: "The sheet could not be read as a table with a header row.",
}

# Checked in order against the provider's error status.
_STATUS_KINDS = (
    ("INVALID_ARGUMENT", ErrorKind.BAD_REQUEST),
    ("PERMISSION_DENIED", ErrorKind.UNAUTHORIZED),
    ("RESOURCE_EXHAUSTED", ErrorKind.QUOTA_EXCEEDED),
)


@dataclass
class GatewayResult:
    """Outcome of one gateway call.

    ``text`` is always set: the answer on success, a message safe to show
    the user otherwise.  ``action`` asks the caller to do something
    locally, currently only ``"clear_history"``.
    """

    success: bool
    text: str
    error_kind: Optional[ErrorKind] = None
    raw_error: Optional[str] = None
    action: Optional[str] = None

    @classmethod
    def failure(
        cls, kind: ErrorKind, raw_error: Optional[str] = None, detail: Optional[str] = None
    ) -> "GatewayResult":
        text = kind.message if not detail else f"{kind.message} ({detail})"
        return cls(success=False, text=text, error_kind=kind, raw_error=raw_error)


def _scrub(text: Optional[str], secret: str) -> Optional[str]:
    if text is None or not secret:
        return text
    return text.replace(secret, "***")


def command_result(query: str) -> Optional[GatewayResult]:
    """Answer ``/help`` and ``/clear`` locally; ``None`` for anything else."""
    normalized = query.strip().lower()
    if normalized.startswith("/help"):
        return GatewayResult(success=True, text=HELP_TEXT)
    if normalized == "/clear":
        return GatewayResult(success=True, text="Conversation history cleared.", action=CLEAR_HISTORY)
    return None


def _is_transient(response: Any) -> bool:
    return response.status_code in TRANSIENT_STATUS_CODES


def _last_outcome(retry_state: RetryCallState) -> Any:
    # Re-raises the last exception, or returns the last 5xx response for classification.
    return retry_state.outcome.result()


def _classify_success(data: Any, body: str) -> GatewayResult:
    if not isinstance(data, dict):
        return GatewayResult.failure(ErrorKind.MALFORMED_RESPONSE, raw_error=body)
    candidates = data.get("candidates")
    if candidates is None:
        return GatewayResult.failure(ErrorKind.EMPTY_RESPONSE)
    if not isinstance(candidates, list):
        return GatewayResult.failure(ErrorKind.MALFORMED_RESPONSE, raw_error=body)
    for candidate in candidates:
        if not isinstance(candidate, dict):
            return GatewayResult.failure(ErrorKind.MALFORMED_RESPONSE, raw_error=body)
        content = candidate.get("content")
        if content is None:
            continue
        if not isinstance(content, dict):
            return GatewayResult.failure(ErrorKind.MALFORMED_RESPONSE, raw_error=body)
        parts = content.get("parts") or []
        if not isinstance(parts, list) or not all(isinstance(p, dict) for p in parts):
            return GatewayResult.failure(ErrorKind.MALFORMED_RESPONSE, raw_error=body)
        text = "".join(p["text"] for p in parts if isinstance(p.get("text"), str))
        if text.strip():
            return GatewayResult(success=True, text=text)
    return GatewayResult.failure(ErrorKind.EMPTY_RESPONSE)


def _classify_error(status_code: int, body: str) -> GatewayResult:
    raw = f"HTTP {status_code}: {body}"
    try:
        error = json.loads(body)["error"]
        if not isinstance(error, dict):
            raise TypeError("error field is not an object")
    except (ValueError, KeyError, TypeError):
        return GatewayResult.failure(ErrorKind.NETWORK_ERROR, raw_error=raw)

    status = str(error.get("status") or "")
    message = str(error.get("message") or "")
    for marker, kind in _STATUS_KINDS:
        if marker in status or marker in message:
            return GatewayResult.failure(kind, raw_error=raw)
    return GatewayResult.failure(ErrorKind.PROVIDER_ERROR, raw_error=raw, detail=message or status or None)


def classify_response(status_code: int, body: str, api_key: str = "") -> GatewayResult:
    """Turn an HTTP status code and body into a ``GatewayResult``.

    Parameters
    ----------
    status_code : int
        HTTP status returned by the provider.
    body : str
        Raw response body.
    api_key : str, optional
        Removed from any diagnostic text copied into the result.
    """
    if status_code == 200:
        try:
            data = json.loads(body)
        except ValueError:
            result = GatewayResult.failure(ErrorKind.MALFORMED_RESPONSE, raw_error=body)
        else:
            result = _classify_success(data, body)
    else:
        result = _classify_error(status_code, body)
    result.text = _scrub(result.text, api_key)
    result.raw_error = _scrub(result.raw_error, api_key)
    return result


@dataclass
class AIGateway:
    """Send questions about a dataset to the model and classify the reply.

    Parameters
    ----------
    settings : Settings, optional
        Default settings; ``ask`` can override them per call.  When neither
        is given, settings are read from the environment on each call.
    session : requests.Session, optional
        HTTP session used for the POST request.  Anything with a compatible
        ``post`` method works, which is how tests stub the network.
    model : str, optional
        Model name; defaults to ``GEMINI_MODEL`` or ``gemini-1.5-flash``.
    timeout : float, optional
        Seconds before a request is abandoned.
    max_retries : int, optional
        Extra attempts after a transient failure (connection error,
        timeout, HTTP 5xx).
    retry_delay : float, optional
        Seconds to wait between attempts.
    history_window : int, optional
        Number of most recent history turns sent with the prompt.
        ``None`` sends the whole conversation.
    sample_size : int, optional
        Rows included in the dataset context.
    """

    settings: Optional[Settings] = None
    session: Any = field(default_factory=requests.Session)
    model: str = field(default_factory=lambda: os.getenv("GEMINI_MODEL", DEFAULT_MODEL))
    timeout: float = 30.0
    max_retries: int = 1
    retry_delay: float = 1.0
    history_window: Optional[int] = 20
    sample_size: int = DEFAULT_SAMPLE_SIZE

    @property
    def endpoint(self) -> str:
        return f"{API_ROOT}/{self.model}:generateContent"

    def build_payload(
        self,
        query: str,
        dataset: Optional[DataSet],
        history: Iterable[ConversationTurn],
        settings: Settings,
        include_statistics: bool = False,
    ) -> PromptPayload:
        """Assemble the dataset context and prompt for ``query``."""
        context = ""
        if dataset is not None:
            context = build_context(dataset, self.sample_size)
            if include_statistics:
                context = f"{context}\n\n{build_statistics_context(dataset)}"
        return build_prompt(
            settings.custom_instructions,
            context,
            history,
            query,
            max_history_turns=self.history_window,
        )

    def ask(
        self,
        query: str,
        dataset: Optional[DataSet] = None,
        history: Optional[Iterable[ConversationTurn]] = None,
        settings: Optional[Settings] = None,
        include_statistics: bool = False,
    ) -> GatewayResult:
        """Answer ``query`` about ``dataset``.

        Parameters
        ----------
        query : str
            The user's question or a ``/help`` / ``/clear`` command.
        dataset : DataSet, optional
            Dataset to describe in the prompt.  Without one the question is
            sent with no dataset context.
        history : iterable of ConversationTurn, optional
            Earlier turns, oldest first.
        settings : Settings, optional
            Overrides the gateway's settings for this call.
        include_statistics : bool, optional
            Append column statistics and correlations to the context.

        Returns
        -------
        GatewayResult
            Always returned; this method does not raise.
        """
        api_key = ""
        try:
            local = command_result(query)
            if local is not None:
                return local
            settings = settings or self.settings or Settings.from_env()
            if not settings.has_api_key:
                logger.info("No API key configured; skipping model request")
                return GatewayResult.failure(ErrorKind.MISSING_CREDENTIAL)
            api_key = settings.api_key.strip()
            payload = self.build_payload(query, dataset, history or [], settings, include_statistics)
            result = self._dispatch(payload, api_key)
        except Exception as exc:
            logger.exception("Unexpected failure while calling the model")
            return GatewayResult.failure(
                ErrorKind.UNEXPECTED_ERROR, raw_error=_scrub(f"{type(exc).__name__}: {exc}", api_key)
            )
        if not result.success:
            logger.warning("Model request failed: %s", result.error_kind.value)
        return result

    def _post(self, body: Dict[str, Any], headers: Dict[str, str]) -> Any:
        logger.info("Requesting %s (%d content turns)", self.model, len(body["contents"]))
        return self.session.post(self.endpoint, json=body, headers=headers, timeout=self.timeout)

    def _retrying(self) -> Retrying:
        """Retry policy for one request: connection errors, timeouts and 5xx."""
        return Retrying(
            stop=stop_after_attempt(max(0, self.max_retries) + 1),
            wait=wait_fixed(max(0.0, self.retry_delay)),
            retry=(
                retry_if_exception_type((requests.ConnectionError, requests.Timeout))
                | retry_if_result(_is_transient)
            ),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            retry_error_callback=_last_outcome,
        )

    def _dispatch(self, payload: PromptPayload, api_key: str) -> GatewayResult:
        body = {"contents": to_contents(payload), "generationConfig": dict(GENERATION_CONFIG)}
        headers = {"Content-Type": "application/json", "x-goog-api-key": api_key}
        try:
            response = self._retrying()(self._post, body, headers)
        except requests.RequestException as exc:
            logger.warning("Request failed: %s", type(exc).__name__)
            return GatewayResult.failure(ErrorKind.NETWORK_ERROR, raw_error=_scrub(str(exc), api_key))
        logger.info("Model responded with HTTP %s", response.status_code)
        return classify_response(response.status_code, response.text, api_key)
