"""
Model Gateway

Sends one assembled request to the OpenAI-compatible chat-completions
endpoint and always hands back a well-formed ModelResult.

CRITICAL: `send` never raises. A missing credential returns the setup
guide, and a transport or protocol failure returns a displayable error
reply. There is exactly one HTTP attempt per call and no retry, so a
slow or failing provider costs the user one message, not several.

The gateway never touches the ledger; candidates it returns are
unvalidated until the reconciler has seen them.
"""

import json
from collections.abc import Callable
from typing import Any, Optional

import httpx
import structlog

from smartbill.agents.prompts import (
    API_KEY_GUIDE,
    AWAITING_SETUP_MOOD,
    DEFAULT_ACKNOWLEDGEMENT,
    FRUSTRATED_MOOD,
    SERVICE_UNAVAILABLE,
)
from smartbill.config.settings import LLMSettings
from smartbill.models.llm import (
    AIPersona,
    ModelRequest,
    ModelResult,
    ResultStatus,
    TransactionCandidate,
)

logger = structlog.get_logger(__name__)

# Returns the user's API key, or None when none is configured
CredentialProvider = Callable[[], Optional[str]]

_REPLY_FIELDS = ("chat_response", "answer", "reply")
_TRANSACTION_FIELDS = ("transactions", "items")


def extract_json_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} region of `text`, or None.

    Braces inside JSON strings (including escaped quotes) do not count.
    """
    start = text.find("{")
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def _first_present(data: dict[str, Any], fields: tuple[str, ...]) -> Any:
    for name in fields:
        if name in data:
            return data[name]
    return None


def _persona_from(data: dict[str, Any]) -> Optional[AIPersona]:
    source = data.get("ai_persona")
    if not isinstance(source, dict):
        source = data
    vibe = source.get("vibe_check")
    color = source.get("mood_color")
    if not isinstance(vibe, str) and not isinstance(color, str):
        return None
    return AIPersona(
        vibe_check=vibe if isinstance(vibe, str) else None,
        mood_color=color if isinstance(color, str) else None,
    )


def parse_model_content(text: str) -> ModelResult:
    """
    Interpret the model's message content.

    Structured JSON (optionally wrapped in commentary) gives status OK.
    Anything that does not parse becomes the reply verbatim, with no
    candidates and status UNSTRUCTURED.
    """
    region = extract_json_object(text)
    data: Any = None
    if region is not None:
        try:
            data = json.loads(region)
        except ValueError:
            data = None

    if not isinstance(data, dict):
        return ModelResult(
            reply=text.strip() or DEFAULT_ACKNOWLEDGEMENT,
            status=ResultStatus.UNSTRUCTURED,
        )

    reply = _first_present(data, _REPLY_FIELDS)
    if not isinstance(reply, str) or not reply.strip():
        reply = DEFAULT_ACKNOWLEDGEMENT

    raw_items = _first_present(data, _TRANSACTION_FIELDS)
    candidates = [
        TransactionCandidate.model_validate(item)
        for item in (raw_items if isinstance(raw_items, list) else [])
        if isinstance(item, dict)
    ]

    return ModelResult(
        reply=reply,
        transactions=candidates,
        persona=_persona_from(data),
        status=ResultStatus.OK,
    )


def _content_text(content: Any) -> Optional[str]:
    """Message content as text; some providers return a list of parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [p.get("text") for p in content if isinstance(p, dict) and isinstance(p.get("text"), str)]
        return "".join(parts) if parts else None
    return None


def _error_reason(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(body.get("message"), str):
            return body["message"]
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return f"HTTP {response.status_code}"


class ModelGateway:
    """
    Client for the chat-completions endpoint.

    Usage:
        gateway = ModelGateway(preferences.get_api_key, get_settings().llm)
        result = await gateway.send(request)
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        settings: Optional[LLMSettings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            credentials: Returns the stored API key (None if not configured).
                The settings' api_key is used when it returns nothing.
            settings: Endpoint configuration
            client: Shared HTTP client; one is created per request if omitted
        """
        self._credentials = credentials
        self._settings = settings or LLMSettings()
        self._client = client

    def api_key(self) -> Optional[str]:
        key = self._credentials()
        if isinstance(key, str) and key.strip():
            return key.strip()
        return self._settings.api_key

    def request_body(self, request: ModelRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self._settings.model_name,
            "messages": request.to_wire(),
        }
        if self._settings.json_response_format:
            body["response_format"] = {"type": "json_object"}
        return body

    async def send(self, request: ModelRequest) -> ModelResult:
        """
        Send the request and interpret the response.

        Never raises. See ResultStatus for the possible outcomes.
        """
        api_key = self.api_key()
        if not api_key:
            logger.info("model_credential_missing")
            vibe, color = AWAITING_SETUP_MOOD
            return ModelResult(
                reply=API_KEY_GUIDE,
                persona=AIPersona(vibe_check=vibe, mood_color=color),
                status=ResultStatus.MISSING_CREDENTIAL,
            )

        try:
            data = await self._post(api_key, self.request_body(request))
            content = _content_text(data["choices"][0]["message"]["content"])
            if content is None:
                raise ModelProtocolError("response has no message content")
        except ModelProtocolError as e:
            return self._failure(str(e))
        except httpx.HTTPError as e:
            return self._failure(str(e) or type(e).__name__)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            return self._failure(f"unexpected response format ({type(e).__name__})")
        except Exception as e:
            logger.exception("model_gateway_unexpected_error")
            return self._failure(str(e) or type(e).__name__)

        result = parse_model_content(content)
        logger.info(
            "model_response_parsed",
            status=result.status.value,
            candidates=len(result.transactions),
            mode=request.mode.value,
        )
        return result

    async def _post(self, api_key: str, body: dict[str, Any]) -> Any:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        if self._client is not None:
            response = await self._client.post(self._settings.api_url, headers=headers, json=body)
        else:
            async with httpx.AsyncClient(timeout=self._settings.timeout_seconds) as client:
                response = await client.post(self._settings.api_url, headers=headers, json=body)

        if not response.is_success:
            raise ModelProtocolError(_error_reason(response))
        try:
            return response.json()
        except ValueError as e:
            raise ModelProtocolError("response body is not JSON") from e

    def _failure(self, reason: str) -> ModelResult:
        logger.warning("model_request_failed", reason=reason)
        vibe, color = FRUSTRATED_MOOD
        return ModelResult(
            reply=SERVICE_UNAVAILABLE.format(reason=reason),
            persona=AIPersona(vibe_check=vibe, mood_color=color),
            status=ResultStatus.FAILED,
            error_message=reason,
        )


class ModelProtocolError(Exception):
    """The endpoint answered, but not with a usable completion."""
    pass
