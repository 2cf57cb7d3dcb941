"""Turns a raw chat message into a structured Gmail intent.

Pattern matching runs first over an ordered list of categories; the first
category whose pattern matches wins. Messages no pattern recognizes are handed
to the LLM classifier, whose proposed tool call is mapped back onto the same
Intent shape. Routing is exposed both as plain methods and as a compiled
LangGraph StateGraph, like the other routing components.
"""

from __future__ import annotations

import logging
import operator
import re
from dataclasses import dataclass, field
from typing import Annotated, Any, Awaitable, Callable, Mapping, TypedDict

from langgraph.graph import END, StateGraph

from mailbot.agents.operation_table import (
    CATEGORY_ADD_LABEL,
    CATEGORY_CREATE_DRAFT,
    CATEGORY_DELETE,
    CATEGORY_FETCH,
    CATEGORY_LIST_DRAFTS,
    CATEGORY_LIST_LABELS,
    CATEGORY_NONE,
    CATEGORY_REMOVE_LABEL,
    CATEGORY_REPLY,
    CATEGORY_SEARCH,
    CATEGORY_SEND,
    DEPENDENT_CATEGORIES,
    KEY_BODY,
    KEY_LABEL,
    KEY_MESSAGE_ID,
    KEY_QUERY,
    KEY_RECIPIENT,
    KEY_SUBJECT,
    KEY_THREAD_ID,
    known_operation_ids,
    reverse_lookup,
)
from mailbot.schemas import StepLog
from mailbot.services.intent_classifier import ClassifierResponse, IntentClassifier

logger = logging.getLogger(__name__)

ENTITY_SOURCE = "source"
ENTITY_SCOPE = "scope"

SCOPE_UNREAD = "unread"
SCOPE_INBOX = "inbox"

SOURCE_PATTERN = "pattern"
SOURCE_CLASSIFIER = "classifier"

REQUIRED_ENTITIES: dict[str, tuple[str, ...]] = {
    CATEGORY_SEND: (KEY_RECIPIENT, KEY_BODY),
    CATEGORY_CREATE_DRAFT: (KEY_RECIPIENT, KEY_BODY),
    CATEGORY_REPLY: (KEY_BODY,),
    CATEGORY_ADD_LABEL: (KEY_LABEL,),
    CATEGORY_REMOVE_LABEL: (KEY_LABEL,),
    CATEGORY_SEARCH: (KEY_QUERY,),
}


@dataclass(frozen=True)
class Intent:
    """Structured reading of one chat message."""

    category: str
    entities: Mapping[str, str | list[str]] = field(default_factory=dict)
    dependent: bool = False
    missing_entity: str | None = None
    reply: str | None = None
    source: str = SOURCE_PATTERN

    def entity(self, key: str, default: str = "") -> str:
        value = self.entities.get(key)
        if isinstance(value, list):
            return str(value[0]) if value else default
        return value if value else default


# ---------------------------------------------------------------------------
# Entity helpers
# ---------------------------------------------------------------------------

EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")

_MAIL_NOUN = r"(?:e-?mails?|messages?|mails?)"
_LAST = r"(?:(?:the|my)\s+)*(?:(?:last|latest|most\s+recent|newest|this)\s+)?"

_BODY_MARKER_RE = re.compile(
    r"\s*\b(?:saying|that\s+says|with\s+(?:the\s+)?(?:body|message|text)|body:?|message:)\s+(?P<body>.+)$",
    re.IGNORECASE | re.DOTALL,
)
_REPLY_REFERENT_RE = re.compile(
    r"@|\b(?:to|from|in|last|latest|newest|recent|one|it|them|him|her)\b",
    re.IGNORECASE,
)
_SUBJECT_RE = re.compile(
    r"\b(?:with\s+(?:the\s+)?subject|subject:?|about|regarding|re:)\s+(?P<subject>.+)$",
    re.IGNORECASE | re.DOTALL,
)
_SOURCE_RE = re.compile(
    r"\b(?:from|in)\s+(?:the\s+|my\s+)?(?P<source>.+?)\s*(?:folder)?\s*$",
    re.IGNORECASE,
)

_GENERIC_LABEL_WORDS = {"", "a", "an", "the", "label", "a label", "the label", "new label"}

# "mark as read" and friends map onto Gmail system labels.
_MARK_AS_ALIASES: dict[str, tuple[str, str]] = {
    "read": (CATEGORY_REMOVE_LABEL, "UNREAD"),
    "unread": (CATEGORY_ADD_LABEL, "UNREAD"),
    "important": (CATEGORY_ADD_LABEL, "IMPORTANT"),
    "unimportant": (CATEGORY_REMOVE_LABEL, "IMPORTANT"),
    "not important": (CATEGORY_REMOVE_LABEL, "IMPORTANT"),
    "starred": (CATEGORY_ADD_LABEL, "STARRED"),
    "unstarred": (CATEGORY_REMOVE_LABEL, "STARRED"),
}

_FOLDER_SCOPES = ("spam", "trash", "sent", "starred", "important", "drafts")


def _clean(value: str | None) -> str:
    if not value:
        return ""
    return value.strip().strip("\"'“”‘’").strip().rstrip(".?!").strip()


def _split_body(text: str) -> tuple[str, str]:
    """Split ``text`` into (text before the body marker, body)."""
    match = _BODY_MARKER_RE.search(text)
    if not match:
        return text, ""
    return text[: match.start()], _clean(match.group("body"))


def _extract_subject(text: str) -> str:
    match = _SUBJECT_RE.search(text)
    return _clean(match.group("subject")) if match else ""


def _subject_from_body(body: str) -> str:
    first_line = body.splitlines()[0] if body else ""
    words = first_line.split()
    subject = " ".join(words[:8])
    if len(words) > 8:
        subject += "..."
    return subject[:1].upper() + subject[1:] if subject else "Hello"


def _extract_source(text: str) -> str:
    match = _SOURCE_RE.search(text)
    return _clean(match.group("source")) if match else ""


def _normalize_label(raw: str) -> str:
    label = _clean(raw)
    label = re.sub(r"^(?:(?:the|a|an)\s+)?(?:label\s+)?", "", label, flags=re.IGNORECASE)
    label = re.sub(r"\s+label$", "", label, flags=re.IGNORECASE)
    return _clean(label)


# ---------------------------------------------------------------------------
# Per-category matchers (ordered; first non-None wins)
# ---------------------------------------------------------------------------

_REPLY_RE = re.compile(r"^\s*(?:please\s+)?reply\b(?P<rest>.*)$", re.IGNORECASE | re.DOTALL)
_DRAFT_RE = re.compile(
    rf"^\s*(?:please\s+)?(?:(?:create|write|make|compose|save)\s+(?:an?\s+)?(?:{_MAIL_NOUN}\s+)?draft|draft\s+(?:an?\s+)?{_MAIL_NOUN})\b(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL,
)
_SEND_RE = re.compile(
    rf"^\s*(?:please\s+)?(?:send|write|compose)\s+(?:an?\s+)?(?:new\s+)?{_MAIL_NOUN}\b(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL,
)
_SEND_DIRECT_RE = re.compile(
    r"^\s*(?:please\s+)?e-?mail\s+(?P<rest>[\w.+-]+@[\w-]+(?:\.[\w-]+)+.*)$",
    re.IGNORECASE | re.DOTALL,
)
_LIST_DRAFTS_RE = re.compile(
    r"\b(?:list|show|see|view|check|get|fetch)\s+(?:me\s+)?(?:all\s+)?(?:of\s+)?(?:my\s+)?(?:e-?mail\s+)?drafts?\b"
    r"|^\s*(?:my\s+)?drafts?\s*\??\s*$",
    re.IGNORECASE,
)
_LIST_LABELS_RE = re.compile(
    r"\b(?:list|show|see|view|check|get|fetch)\s+(?:me\s+)?(?:all\s+)?(?:of\s+)?(?:my\s+)?(?:gmail\s+)?labels?\b"
    r"|\bwhat\s+labels?\b|^\s*(?:my\s+)?labels?\s*\??\s*$",
    re.IGNORECASE,
)
_DELETE_RE = re.compile(
    rf"^\s*(?:please\s+)?(?:delete|trash|remove|bin)\s+{_LAST}{_MAIL_NOUN}\b(?P<rest>.*)$",
    re.IGNORECASE | re.DOTALL,
)
_REMOVE_LABEL_RES = (
    re.compile(
        rf"^\s*(?:please\s+)?remove\s+(?P<label>.+?)\s+from\s+{_LAST}{_MAIL_NOUN}\b(?P<rest>.*)$",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(
        rf"^\s*(?:please\s+)?unmark\s+{_LAST}{_MAIL_NOUN}\s+as\s+(?P<label>.+)$",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(
        rf"^\s*(?:please\s+)?unlabel\s+{_LAST}{_MAIL_NOUN}(?:\s+as)?\s+(?P<label>.+)$",
        re.IGNORECASE | re.DOTALL,
    ),
)
_MARK_AS_RE = re.compile(
    rf"^\s*(?:please\s+)?mark\s+{_LAST}{_MAIL_NOUN}(?P<source>\s+from\s+\S+)?\s+as\s+(?P<label>.+)$",
    re.IGNORECASE | re.DOTALL,
)
_ADD_LABEL_RES = (
    re.compile(
        rf"^\s*(?:please\s+)?(?:add|apply|put)\s+(?P<label>.+?)\s+(?:to|on)\s+{_LAST}{_MAIL_NOUN}\b(?P<rest>.*)$",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(
        rf"^\s*(?:please\s+)?(?:label|tag)\s+{_LAST}{_MAIL_NOUN}(?:\s+(?:as|with))?\s+(?P<label>.+)$",
        re.IGNORECASE | re.DOTALL,
    ),
)
_UNREAD_RE = re.compile(
    rf"\b(?:list|show|check|get|fetch|see|view|read|any|display)\b.*\bunread\b|\bunread\s+{_MAIL_NOUN}\b",
    re.IGNORECASE,
)
_INBOX_RE = re.compile(
    rf"\b(?:list|show|check|get|fetch|see|view|open|display)\s+(?:me\s+)?(?:all\s+)?(?:of\s+)?(?:my\s+)?"
    rf"(?:(?P<folder>{'|'.join(_FOLDER_SCOPES)})\s+(?:folder\s+)?)?"
    rf"(?:inbox|(?:(?:latest|recent|last|new)\s+)?{_MAIL_NOUN}|(?P<bare>{'|'.join(_FOLDER_SCOPES)}))\b(?P<rest>.*)$"
    rf"|^\s*(?:my\s+)?inbox\s*\??\s*$",
    re.IGNORECASE | re.DOTALL,
)
_SEARCH_RES = (
    re.compile(
        rf"^\s*(?:please\s+)?search\b\s*(?:(?:my|the)\s+)?(?:{_MAIL_NOUN}\s+|inbox\s+|gmail\s+)?(?:for|about)?\s*(?P<query>.*)$",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(
        rf"^\s*(?:please\s+)?find\s+(?:(?:my|the|all)\s+)?(?P<unread>unread\s+)?{_MAIL_NOUN}\s*(?P<kind>about|for|from|with|containing|mentioning)?\s*(?P<query>.*)$",
        re.IGNORECASE | re.DOTALL,
    ),
    re.compile(
        rf"^\s*(?:please\s+)?look\s+for\s+(?:(?:my|the|all)\s+)?(?P<unread>unread\s+)?{_MAIL_NOUN}\s*(?P<kind>about|for|from|with|containing|mentioning)?\s*(?P<query>.*)$",
        re.IGNORECASE | re.DOTALL,
    ),
)
_SEARCH_LEAD_RE = re.compile(r"^\s*(?:please\s+)?(?:search|find|look\s+for)\b", re.IGNORECASE)
_SEARCH_UNREAD_RE = re.compile(rf"\bunread(?:\s+{_MAIL_NOUN})?\b", re.IGNORECASE)
_SEARCH_SENDER_RE = re.compile(
    r"\bfrom\s+(?!(?:the|my|a|an|last|this)\b)(?P<sender>[^\s:]+)",
    re.IGNORECASE,
)


def _compose_entities(rest: str) -> dict[str, str]:
    head, body = _split_body(rest)
    entities: dict[str, str] = {}
    email = EMAIL_RE.search(head)
    if email:
        entities[KEY_RECIPIENT] = email.group(0)
        head = head[: email.start()] + head[email.end():]
    subject = _extract_subject(head)
    if not body and subject:
        # A bare topic doubles as a minimal body.
        body = subject
    if body:
        entities[KEY_BODY] = body
        entities[KEY_SUBJECT] = subject or _subject_from_body(body)
    elif subject:
        entities[KEY_SUBJECT] = subject
    return entities


def _split_unmarked_reply(head: str) -> tuple[str, str]:
    """Split a marker-less reply into (referent text, body).

    The body must follow an explicit ``:`` or a leading ``,``/``-``, or be
    free of anything that reads like a target ("to john", "the last one").
    """
    text = head.strip()
    if ":" in text:
        referent, _, body = text.partition(":")
        return referent, _clean(body)
    if text[:1] in (",", "-"):
        return "", _clean(text[1:])
    if re.search(_MAIL_NOUN, text, re.IGNORECASE) or _REPLY_REFERENT_RE.search(text):
        return head, ""
    return "", _clean(text)


def _match_reply(message: str) -> tuple[str, dict[str, Any]] | None:
    match = _REPLY_RE.match(message)
    if not match:
        return None
    head, body = _split_body(match.group("rest"))
    if not body:
        head, body = _split_unmarked_reply(head)
    entities: dict[str, Any] = {}
    if body:
        entities[KEY_BODY] = body
    source = _extract_source(head)
    if source:
        entities[ENTITY_SOURCE] = source
    return CATEGORY_REPLY, entities


def _match_draft(message: str) -> tuple[str, dict[str, Any]] | None:
    match = _DRAFT_RE.match(message)
    if not match:
        return None
    return CATEGORY_CREATE_DRAFT, _compose_entities(match.group("rest"))


def _match_send(message: str) -> tuple[str, dict[str, Any]] | None:
    match = _SEND_RE.match(message) or _SEND_DIRECT_RE.match(message)
    if not match:
        return None
    return CATEGORY_SEND, _compose_entities(match.group("rest"))


def _match_list_drafts(message: str) -> tuple[str, dict[str, Any]] | None:
    if _LIST_DRAFTS_RE.search(message):
        return CATEGORY_LIST_DRAFTS, {}
    return None


def _match_list_labels(message: str) -> tuple[str, dict[str, Any]] | None:
    if _LIST_LABELS_RE.search(message):
        return CATEGORY_LIST_LABELS, {}
    return None


def _match_delete(message: str) -> tuple[str, dict[str, Any]] | None:
    match = _DELETE_RE.match(message)
    if not match:
        return None
    entities: dict[str, Any] = {}
    source = _extract_source(match.group("rest"))
    if source:
        entities[ENTITY_SOURCE] = source
    return CATEGORY_DELETE, entities


def _match_remove_label(message: str) -> tuple[str, dict[str, Any]] | None:
    for pattern in _REMOVE_LABEL_RES:
        match = pattern.match(message)
        if not match:
            continue
        entities: dict[str, Any] = {}
        label = _normalize_label(match.group("label"))
        if label.lower() not in _GENERIC_LABEL_WORDS:
            entities[KEY_LABEL] = label
        rest = match.groupdict().get("rest") or ""
        source = _extract_source(rest)
        if source:
            entities[ENTITY_SOURCE] = source
        return CATEGORY_REMOVE_LABEL, entities
    return None


def _match_add_label(message: str) -> tuple[str, dict[str, Any]] | None:
    match = _MARK_AS_RE.match(message)
    if match:
        label = _normalize_label(match.group("label"))
        entities: dict[str, Any] = {}
        if match.group("source"):
            entities[ENTITY_SOURCE] = _extract_source(match.group("source"))
        alias = _MARK_AS_ALIASES.get(label.lower())
        if alias:
            category, system_label = alias
            entities[KEY_LABEL] = system_label
            return category, entities
        if label.lower() not in _GENERIC_LABEL_WORDS:
            entities[KEY_LABEL] = label
        return CATEGORY_ADD_LABEL, entities

    for pattern in _ADD_LABEL_RES:
        match = pattern.match(message)
        if not match:
            continue
        entities = {}
        label = _normalize_label(match.group("label"))
        if label.lower() not in _GENERIC_LABEL_WORDS:
            entities[KEY_LABEL] = label
        source = _extract_source(match.groupdict().get("rest") or "")
        if source:
            entities[ENTITY_SOURCE] = source
        return CATEGORY_ADD_LABEL, entities
    return None


def _match_fetch(message: str) -> tuple[str, dict[str, Any]] | None:
    if _SEARCH_LEAD_RE.match(message):
        return None
    if _UNREAD_RE.search(message):
        return CATEGORY_FETCH, {ENTITY_SCOPE: SCOPE_UNREAD, KEY_QUERY: "is:unread"}
    match = _INBOX_RE.search(message)
    if not match:
        return None
    folder = (match.group("folder") or match.group("bare") or "").lower()
    if folder and folder != "drafts":
        return CATEGORY_FETCH, {ENTITY_SCOPE: folder, KEY_QUERY: f"in:{folder}"}
    sender = _extract_source(match.group("rest") or "")
    if sender and re.match(r"^from\b", (match.group("rest") or "").strip(), re.IGNORECASE):
        return CATEGORY_SEARCH, {KEY_QUERY: f"from:{sender}"}
    return CATEGORY_FETCH, {ENTITY_SCOPE: SCOPE_INBOX, KEY_QUERY: ""}


def _search_query(text: str) -> str:
    """Rewrite "unread" and "from <sender>" qualifiers as Gmail operators."""

    query = text
    terms: list[str] = []
    unread = _SEARCH_UNREAD_RE.search(query)
    if unread:
        terms.append("is:unread")
        query = query[: unread.start()] + " " + query[unread.end():]
    sender = _SEARCH_SENDER_RE.search(query)
    if sender:
        terms.append(f"from:{sender.group('sender')}")
        query = query[: sender.start()] + " " + query[sender.end():]
    rest = " ".join(query.split())
    if rest:
        terms.append(rest)
    return " ".join(terms)


def _match_search(message: str) -> tuple[str, dict[str, Any]] | None:
    for pattern in _SEARCH_RES:
        match = pattern.match(message)
        if not match:
            continue
        query = _clean(match.group("query"))
        kind = (match.groupdict().get("kind") or "").lower()
        if query and kind == "from" and ":" not in query:
            query = f"from:{query}"
        if match.groupdict().get("unread"):
            query = f"unread {query}"
        query = _search_query(query)
        return CATEGORY_SEARCH, {KEY_QUERY: query} if query else {}
    return None


_MATCHERS: tuple[Callable[[str], tuple[str, dict[str, Any]] | None], ...] = (
    _match_reply,
    _match_draft,
    _match_send,
    _match_list_drafts,
    _match_list_labels,
    _match_delete,
    _match_remove_label,
    _match_add_label,
    _match_fetch,
    _match_search,
)


def _build_intent(
    category: str,
    entities: Mapping[str, Any],
    *,
    source: str,
    reply: str | None = None,
) -> Intent:
    missing = next(
        (key for key in REQUIRED_ENTITIES.get(category, ()) if not entities.get(key)),
        None,
    )
    return Intent(
        category=category,
        entities=dict(entities),
        dependent=category in DEPENDENT_CATEGORIES,
        missing_entity=missing,
        reply=reply,
        source=source,
    )


def match_patterns(message: str) -> Intent:
    """Resolve ``message`` with the ordered pattern set only."""

    text = message.strip()
    for matcher in _MATCHERS:
        found = matcher(text)
        if found is not None:
            category, entities = found
            return _build_intent(category, entities, source=SOURCE_PATTERN)
    return Intent(category=CATEGORY_NONE, source=SOURCE_PATTERN)


def intent_from_classifier(response: ClassifierResponse) -> Intent:
    """Map the classifier's first proposed tool call back onto an Intent."""

    if not response.tool_calls:
        return Intent(category=CATEGORY_NONE, reply=response.reply, source=SOURCE_CLASSIFIER)

    call = response.tool_calls[0]
    found = reverse_lookup(call.operation)
    if found is None:
        logger.warning("Classifier proposed unknown operation %s", call.operation)
        return Intent(category=CATEGORY_NONE, reply=response.reply, source=SOURCE_CLASSIFIER)

    category, candidate = found
    param_to_key = {param: key for key, param in candidate.argument_alias_map.items()}
    entities: dict[str, Any] = {}
    for param, value in call.arguments.items():
        key = param_to_key.get(param)
        if key is None or value in (None, "", []):
            continue
        if key == KEY_LABEL and isinstance(value, list):
            value = value[0]
        entities[key] = value if isinstance(value, (str, list)) else str(value)

    if category == CATEGORY_FETCH:
        query = str(entities.get(KEY_QUERY) or "")
        if query == "is:unread":
            entities[ENTITY_SCOPE] = SCOPE_UNREAD
        elif query.startswith("in:"):
            entities[ENTITY_SCOPE] = query[3:]
        elif query:
            category = CATEGORY_SEARCH
        else:
            entities[ENTITY_SCOPE] = SCOPE_INBOX
        entities.pop("max_results", None)
    if category in DEPENDENT_CATEGORIES:
        # Identifiers are always re-resolved through a lookup fetch.
        entities.pop(KEY_MESSAGE_ID, None)
        entities.pop(KEY_THREAD_ID, None)
    if category in (CATEGORY_SEND, CATEGORY_CREATE_DRAFT) and entities.get(KEY_BODY) and not entities.get(KEY_SUBJECT):
        entities[KEY_SUBJECT] = _subject_from_body(str(entities[KEY_BODY]))

    return _build_intent(category, entities, source=SOURCE_CLASSIFIER, reply=response.reply)


# ---------------------------------------------------------------------------
# Resolver with classifier fallback (LangGraph wrapper)
# ---------------------------------------------------------------------------


class ResolverState(TypedDict, total=False):
    message: str
    principal: str
    intent: Intent
    steps: Annotated[list[StepLog], operator.add]


OperationLister = Callable[[str], Awaitable[list[str]]]


class IntentResolver:
    """Pattern-first resolver that falls back to the LLM classifier."""

    name = "intent_resolver"

    def __init__(
        self,
        *,
        classifier: IntentClassifier | None = None,
        list_operations: OperationLister | None = None,
    ) -> None:
        self._classifier = classifier
        self._list_operations = list_operations
        self._graph = self._build_graph()

    def resolve(self, message: str) -> Intent:
        """Pattern-only resolution; never touches the network."""

        return match_patterns(message)

    async def aresolve(self, message: str, principal: str) -> tuple[Intent, list[StepLog]]:
        """Resolve through the compiled graph, consulting the classifier when needed."""

        result = await self._graph.ainvoke({"message": message, "principal": principal, "steps": []})
        return result["intent"], result.get("steps", [])

    async def _available_operations(self, principal: str) -> list[str]:
        if self._list_operations is None:
            return known_operation_ids()
        try:
            names = await self._list_operations(principal)
        except Exception as exc:
            logger.warning(
                "Listing operations failed, using static table: %s: %s",
                type(exc).__name__,
                exc,
            )
            return known_operation_ids()
        return names or known_operation_ids()

    def _build_graph(self) -> Any:
        resolver_self = self

        def match_node(state: ResolverState) -> dict[str, Any]:
            intent = match_patterns(state["message"])
            step = StepLog(
                module=f"{resolver_self.name}.patterns",
                prompt={"message": state["message"]},
                response={
                    "category": intent.category,
                    "entities": dict(intent.entities),
                    "missing_entity": intent.missing_entity,
                },
            )
            return {"intent": intent, "steps": [step]}

        async def classify_node(state: ResolverState) -> dict[str, Any]:
            names = await resolver_self._available_operations(state["principal"])
            response = await resolver_self._classifier.classify(state["message"], names)
            intent = intent_from_classifier(response)
            step = StepLog(
                module=f"{resolver_self.name}.classifier",
                prompt={"message": state["message"], "available_operations": len(names)},
                response={
                    "category": intent.category,
                    "tool_calls": [call.operation for call in response.tool_calls or []],
                    "missing_entity": intent.missing_entity,
                },
            )
            return {"intent": intent, "steps": [step]}

        def after_match(state: ResolverState) -> str:
            needs_classifier = (
                state["intent"].category == CATEGORY_NONE
                and resolver_self._classifier is not None
            )
            return "classify" if needs_classifier else END

        builder = StateGraph(ResolverState)
        builder.add_node("match_patterns", match_node)
        builder.add_node("classify", classify_node)
        builder.set_entry_point("match_patterns")
        builder.add_conditional_edges("match_patterns", after_match, {"classify": "classify", END: END})
        builder.add_edge("classify", END)
        return builder.compile()
