"""Normalize heterogeneous remote payloads into flat record lists.

Every field is read through an ordered list of small accessor rules; the first
rule that yields a non-empty value wins. Nothing here raises: unknown shapes
degrade to sentinel defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

from mailbot.services.tool_client import RemoteResult

SHAPE_MESSAGES = "messages"
SHAPE_DRAFTS = "drafts"
SHAPE_LABELS = "labels"

UNKNOWN_SENDER = "Unknown Sender"
NO_SUBJECT = "No Subject"
NO_PREVIEW = "No preview"
UNKNOWN_DATE = "Unknown Date"


@dataclass(frozen=True)
class NormalizedRecord:
    identifier: str | None
    sender: str = UNKNOWN_SENDER
    subject: str = NO_SUBJECT
    snippet: str = NO_PREVIEW
    date: str = UNKNOWN_DATE
    thread_id: str | None = None
    labels: tuple[str, ...] = ()


@dataclass(frozen=True)
class NormalizedLabel:
    identifier: str | None
    name: str
    label_type: str | None = None
    message_count: int | None = None


@dataclass(frozen=True)
class NormalizedListing:
    """All records found in a result; ``total`` counts them before any display limit."""

    records: tuple[NormalizedRecord | NormalizedLabel, ...] = field(default_factory=tuple)
    total: int = 0

    @property
    def first(self) -> NormalizedRecord | NormalizedLabel | None:
        return self.records[0] if self.records else None


Rule = Callable[[dict[str, Any]], Any]


def _key(name: str) -> Rule:
    return lambda item: item.get(name)


def _nested(*path: str) -> Rule:
    def read(item: dict[str, Any]) -> Any:
        value: Any = item
        for part in path:
            if not isinstance(value, dict):
                return None
            value = value.get(part)
        return value

    return read


def _header(name: str, *path: str) -> Rule:
    def read(item: dict[str, Any]) -> Any:
        payload = _nested(*path, "payload")(item)
        if not isinstance(payload, dict):
            return None
        headers = payload.get("headers")
        if not isinstance(headers, list):
            return None
        for header in headers:
            if isinstance(header, dict) and str(header.get("name", "")).lower() == name.lower():
                return header.get("value")
        return None

    return read


SENDER_RULES: tuple[Rule, ...] = (
    _key("sender"),
    _key("from"),
    _key("fromEmail"),
    _header("From"),
    _header("From", "message"),
)
SUBJECT_RULES: tuple[Rule, ...] = (
    _key("subject"),
    _key("title"),
    _nested("message", "subject"),
    _header("Subject"),
    _header("Subject", "message"),
)
SNIPPET_RULES: tuple[Rule, ...] = (
    _nested("preview", "body"),
    _key("messageText"),
    _key("snippet"),
    _key("body"),
    _key("content"),
    _nested("message", "snippet"),
)
DATE_RULES: tuple[Rule, ...] = (
    _key("messageTimestamp"),
    _key("date"),
    _key("timestamp"),
    _key("receivedAt"),
    _key("created"),
    _key("internalDate"),
)
IDENTIFIER_RULES: tuple[Rule, ...] = (_key("id"), _key("messageId"), _key("gmailId"), _key("draftId"))
THREAD_RULES: tuple[Rule, ...] = (_key("threadId"), _key("thread_id"), _nested("message", "threadId"))
LABEL_LIST_RULES: tuple[Rule, ...] = (_key("labelIds"), _key("labels"))


def first_match(item: dict[str, Any], rules: tuple[Rule, ...], default: Any = None) -> Any:
    """Apply ``rules`` in order and return the first non-empty value."""

    for rule in rules:
        value = rule(item)
        if value is None:
            continue
        if isinstance(value, str):
            if value.strip():
                return value.strip()
            continue
        if isinstance(value, dict):
            # Sender objects look like {"name": ..., "email": ...}.
            text = value.get("email") or value.get("name")
            if text:
                return str(text)
            continue
        return value
    return default


def _text(value: Any, default: str) -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text or default


def _record(item: dict[str, Any]) -> NormalizedRecord:
    identifier = first_match(item, IDENTIFIER_RULES)
    # A draft's message id is the one later actions need.
    if identifier is None:
        identifier = first_match(item, (_nested("message", "id"),))
    thread_id = first_match(item, THREAD_RULES)
    labels = first_match(item, LABEL_LIST_RULES, default=[])
    if not isinstance(labels, list):
        labels = []
    return NormalizedRecord(
        identifier=str(identifier) if identifier is not None else None,
        sender=_text(first_match(item, SENDER_RULES), UNKNOWN_SENDER),
        subject=_text(first_match(item, SUBJECT_RULES), NO_SUBJECT),
        snippet=_text(first_match(item, SNIPPET_RULES), NO_PREVIEW),
        date=_text(first_match(item, DATE_RULES), UNKNOWN_DATE),
        thread_id=str(thread_id) if thread_id is not None else None,
        labels=tuple(str(label) for label in labels if isinstance(label, (str, int))),
    )


def _label(item: dict[str, Any]) -> NormalizedLabel:
    identifier = item.get("id")
    count = item.get("messagesTotal")
    if count is None:
        count = item.get("messageCount")
    try:
        message_count = int(count) if count is not None else None
    except (TypeError, ValueError):
        message_count = None
    return NormalizedLabel(
        identifier=str(identifier) if identifier is not None else None,
        name=_text(item.get("name") or identifier, "Unnamed label"),
        label_type=item.get("type"),
        message_count=message_count,
    )


def _container(data: Any, keys: tuple[str, ...]) -> list[dict[str, Any]]:
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if not isinstance(data, dict):
        return []
    for key in keys:
        value = data.get(key)
        if isinstance(value, list):
            return [item for item in value if isinstance(item, dict)]
    # Some providers nest the actual payload one level further.
    inner = data.get("response_data") or data.get("data")
    if isinstance(inner, (dict, list)) and inner is not data:
        found = _container(inner, keys)
        if found:
            return found
    return []


def _looks_like_message(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    return any(rule(data) for rule in IDENTIFIER_RULES + SUBJECT_RULES + SENDER_RULES)


def normalize(result: RemoteResult | None, shape_hint: str = SHAPE_MESSAGES) -> NormalizedListing:
    """Flatten ``result.data`` into a :class:`NormalizedListing` for ``shape_hint``."""

    if result is None or not result.successful or result.data is None:
        return NormalizedListing()
    data = result.data

    if shape_hint == SHAPE_LABELS:
        items = _container(data, ("labels",))
        labels = tuple(_label(item) for item in items)
        return NormalizedListing(records=labels, total=len(labels))

    keys = ("drafts", "messages", "emails") if shape_hint == SHAPE_DRAFTS else ("messages", "emails")
    items = _container(data, keys)
    if not items and _looks_like_message(data):
        items = [data]
    records = tuple(_record(item) for item in items)
    return NormalizedListing(records=records, total=len(records))
