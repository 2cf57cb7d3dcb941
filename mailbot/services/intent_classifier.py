"""LLM-backed fallback classifier for chat messages no pattern recognizes.

The model is asked to answer with ``{"reply": ..., "toolCalls": [...] | null}``.
Anything that does not parse into that shape degrades to a plain reply.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Protocol

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are an assistant that automates Gmail tasks through remote tool calls.
Return a structured JSON tool call whenever a Gmail action is requested.

Known operations:
- GMAIL_FETCH_EMAILS (list emails: unread, inbox, sent, spam; arguments: query, max_results)
- GMAIL_SEND_EMAIL (send new email; arguments: recipient_email, subject, body)
- GMAIL_CREATE_EMAIL_DRAFT (create a draft; arguments: recipient_email, subject, body)
- GMAIL_REPLY_TO_THREAD (reply to a thread; arguments: thread_id, recipient_email, message_body)
- GMAIL_MOVE_TO_TRASH (delete a message; arguments: message_id)
- GMAIL_LIST_DRAFTS (show drafts; arguments: max_results)
- GMAIL_LIST_LABELS (list labels)
- GMAIL_ADD_LABEL_TO_EMAIL (add label to a message; arguments: message_id, add_label_ids)
- GMAIL_REMOVE_LABEL (remove a label; arguments: message_id, label_id)

Rules:
- Use only the content the user provides. Do not add greetings or signatures.
- Ask for clarification only if the recipient email is completely missing.
- If several messages could match, pick the most recent one.
- Keep the reply short and friendly.

Answer with a single JSON object:
{"reply": "Human-friendly response", "toolCalls": [{"tool": "TOOL_NAME", "arguments": {"key": "value"}}]}
Escape newlines inside strings as \\n. Set toolCalls to null when no Gmail action is needed."""

_CODE_BLOCK_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*?\})\s*```")
_OBJECT_RE = re.compile(r"\{[\s\S]*\}")
_STRING_LITERAL_RE = re.compile(r'"([^"\\]*(\\.[^"\\]*)*)"')


class _ChatBackend(Protocol):
    is_available: bool

    async def generate(self, *, system_prompt: str, user_prompt: str) -> str: ...


@dataclass
class ToolCall:
    """One operation the classifier proposes to run."""

    operation: str
    arguments: dict[str, Any] = field(default_factory=dict)


@dataclass
class ClassifierResponse:
    """Normalized classifier answer."""

    reply: str
    tool_calls: list[ToolCall] | None = None


def _extract_json_text(text: str) -> str:
    match = _CODE_BLOCK_RE.search(text)
    if match:
        candidate = match.group(1)
    else:
        match = _OBJECT_RE.search(text)
        candidate = match.group(0) if match else text
    candidate = candidate.strip()
    # Models sometimes emit literal newlines inside string values.
    return _STRING_LITERAL_RE.sub(
        lambda m: m.group(0).replace("\n", "\\n").replace("\r", "\\r"),
        candidate,
    )


def parse_classifier_output(text: str) -> ClassifierResponse:
    """Parse raw model output; malformed output becomes a reply with no tool calls."""

    try:
        parsed = json.loads(_extract_json_text(text))
    except (json.JSONDecodeError, ValueError):
        logger.warning("Classifier returned non-JSON output; echoing raw text")
        return ClassifierResponse(reply=text, tool_calls=None)
    if not isinstance(parsed, dict):
        return ClassifierResponse(reply=text, tool_calls=None)

    reply = parsed.get("reply")
    reply = reply if isinstance(reply, str) and reply.strip() else text

    raw_calls = parsed.get("toolCalls")
    if not isinstance(raw_calls, list):
        return ClassifierResponse(reply=reply, tool_calls=None)

    calls: list[ToolCall] = []
    for raw in raw_calls:
        if not isinstance(raw, dict):
            continue
        operation = raw.get("tool") or raw.get("operation")
        if not isinstance(operation, str) or not operation.strip():
            continue
        arguments = raw.get("arguments")
        calls.append(
            ToolCall(
                operation=operation.strip(),
                arguments=arguments if isinstance(arguments, dict) else {},
            )
        )
    return ClassifierResponse(reply=reply, tool_calls=calls or None)


class IntentClassifier:
    """Asks the chat model to map a free-text message onto an operation."""

    def __init__(self, *, chat_service: _ChatBackend, enabled: bool = True) -> None:
        self._chat = chat_service
        self._enabled = enabled

    @property
    def is_available(self) -> bool:
        return self._enabled and self._chat.is_available

    async def classify(self, message: str, available_operations: list[str]) -> ClassifierResponse:
        """Classify ``message``; never raises, degrading to a canned reply on failure."""

        if not self.is_available:
            return ClassifierResponse(
                reply=(
                    f'I received your message: "{message}". I can help with Gmail tasks like '
                    "sending, listing, searching, replying to, labelling, or deleting emails."
                ),
                tool_calls=None,
            )

        names = ", ".join(available_operations) if available_operations else "none reported"
        user_prompt = (
            f'User request: "{message}"\n\n'
            "If this is a clear Gmail action request, create the tool call immediately. "
            "Do not ask for clarification unless the recipient email is completely missing.\n\n"
            f"Available operations: {names}\n\n"
            "Respond with the JSON structure."
        )
        try:
            text = await self._chat.generate(system_prompt=SYSTEM_PROMPT, user_prompt=user_prompt)
        except Exception as exc:
            logger.warning("Classifier call failed: %s: %s", type(exc).__name__, exc)
            return ClassifierResponse(
                reply=(
                    f'I received your message: "{message}". I\'ll help you with Gmail tasks, '
                    "but I'm having trouble processing your request right now."
                ),
                tool_calls=None,
            )
        return parse_classifier_output(text)
