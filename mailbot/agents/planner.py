"""Builds execution plans from resolved intents.

Simple categories produce one primary step. Dependent categories (reply,
delete, label changes) produce a single-record lookup fetch plus a function
that turns the record it finds into the follow-up step.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable

from mailbot.agents.extractor import NormalizedRecord, SHAPE_DRAFTS, SHAPE_LABELS, SHAPE_MESSAGES
from mailbot.agents.intent_resolver import ENTITY_SOURCE, Intent
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
    KEY_MAX_RESULTS,
    KEY_MESSAGE_ID,
    KEY_QUERY,
    KEY_RECIPIENT,
    KEY_SUBJECT,
    KEY_THREAD_ID,
    OperationCandidate,
    candidates_for,
    distinct_candidates,
)
from mailbot.exceptions import DependentPreconditionError, PlanContractError

_FOLDER_SOURCES = {"spam": "in:spam", "junk": "in:spam", "trash": "in:trash", "bin": "in:trash", "sent": "in:sent"}
_RECENT_SOURCES = {"", "inbox", "my inbox", "most recent", "latest", "recent", "last", "newest"}
_ANGLE_EMAIL_RE = re.compile(r"<([^<>@\s]+@[^<>\s]+)>")
_BARE_EMAIL_RE = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")

SHAPE_BY_CATEGORY = {
    CATEGORY_LIST_DRAFTS: SHAPE_DRAFTS,
    CATEGORY_LIST_LABELS: SHAPE_LABELS,
}


@dataclass(frozen=True)
class ExecutionStep:
    """Ordered candidates that realize one logical action, plus its canonical arguments."""

    candidates: tuple[OperationCandidate, ...]
    arguments: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.candidates:
            raise PlanContractError("ExecutionStep requires at least one candidate operation")


DependentBuilder = Callable[[NormalizedRecord], ExecutionStep]


@dataclass(frozen=True)
class ExecutionPlan:
    category: str
    primary: ExecutionStep
    dependent: DependentBuilder | None = None
    query: str = ""
    partial_on_exhaustion: bool = False

    @property
    def shape_hint(self) -> str:
        return SHAPE_BY_CATEGORY.get(self.category, SHAPE_MESSAGES)


def derive_lookup_query(source: str | None) -> str:
    """Turn a free-text "from X" qualifier into a Gmail search query."""

    text = (source or "").strip().strip("\"'").lower()
    text = re.sub(r"\s+(?:folder|box)$", "", text)
    if text in _RECENT_SOURCES:
        return ""
    if text in _FOLDER_SOURCES:
        return _FOLDER_SOURCES[text]
    original = (source or "").strip().strip("\"'")
    return f"from:{original}"


def sender_address(sender: str) -> str:
    """Extract the mailbox from a ``Name <addr>`` header, or return the bare address."""

    match = _ANGLE_EMAIL_RE.search(sender)
    if match:
        return match.group(1)
    match = _BARE_EMAIL_RE.search(sender)
    return match.group(0) if match else sender.strip()


def _step(category: str, arguments: dict[str, Any]) -> ExecutionStep:
    return ExecutionStep(candidates=distinct_candidates(candidates_for(category), arguments), arguments=arguments)


def _require_identifier(record: NormalizedRecord) -> str:
    if not record.identifier:
        raise DependentPreconditionError("No subject found for dependent action")
    return record.identifier


def _reply_builder(body: str) -> DependentBuilder:
    def build(record: NormalizedRecord) -> ExecutionStep:
        identifier = _require_identifier(record)
        subject = record.subject
        if not subject.lower().startswith("re:"):
            subject = f"Re: {subject}"
        return _step(
            CATEGORY_REPLY,
            {
                KEY_THREAD_ID: record.thread_id or identifier,
                KEY_RECIPIENT: sender_address(record.sender),
                KEY_SUBJECT: subject,
                KEY_BODY: body,
            },
        )

    return build


def _message_builder(category: str, extra: dict[str, Any]) -> DependentBuilder:
    def build(record: NormalizedRecord) -> ExecutionStep:
        identifier = _require_identifier(record)
        return _step(category, {KEY_MESSAGE_ID: identifier, **extra})

    return build


class ExecutionPlanner:
    """Maps an :class:`Intent` to an :class:`ExecutionPlan`."""

    def __init__(self, *, fetch_max_results: int = 10, search_max_results: int = 5) -> None:
        self._fetch_max_results = fetch_max_results
        self._search_max_results = search_max_results

    def plan(self, intent: Intent) -> ExecutionPlan:
        category = intent.category
        if category == CATEGORY_NONE:
            raise PlanContractError("Cannot plan an intent without a recognized category")
        if intent.missing_entity:
            raise PlanContractError(f"Cannot plan {category}: missing {intent.missing_entity}")

        if category in DEPENDENT_CATEGORIES:
            return self._plan_dependent(intent)

        if category in (CATEGORY_SEND, CATEGORY_CREATE_DRAFT):
            arguments = {
                KEY_RECIPIENT: intent.entity(KEY_RECIPIENT),
                KEY_SUBJECT: intent.entity(KEY_SUBJECT) or "Hello",
                KEY_BODY: intent.entity(KEY_BODY),
            }
            return ExecutionPlan(category=category, primary=_step(category, arguments))

        if category == CATEGORY_FETCH:
            query = intent.entity(KEY_QUERY)
            arguments = {KEY_QUERY: query, KEY_MAX_RESULTS: self._fetch_max_results}
            return ExecutionPlan(category=category, primary=_step(category, arguments), query=query)

        if category == CATEGORY_SEARCH:
            query = intent.entity(KEY_QUERY)
            arguments = {KEY_QUERY: query, KEY_MAX_RESULTS: self._search_max_results}
            return ExecutionPlan(category=category, primary=_step(category, arguments), query=query)

        if category == CATEGORY_LIST_DRAFTS:
            arguments = {KEY_MAX_RESULTS: self._fetch_max_results}
            return ExecutionPlan(category=category, primary=_step(category, arguments))

        if category == CATEGORY_LIST_LABELS:
            return ExecutionPlan(category=category, primary=_step(category, {}))

        raise PlanContractError(f"No plan available for category {category!r}")

    def _plan_dependent(self, intent: Intent) -> ExecutionPlan:
        category = intent.category
        query = derive_lookup_query(intent.entity(ENTITY_SOURCE))
        lookup = _step(CATEGORY_FETCH, {KEY_QUERY: query, KEY_MAX_RESULTS: 1})

        if category == CATEGORY_REPLY:
            dependent = _reply_builder(intent.entity(KEY_BODY))
        elif category == CATEGORY_DELETE:
            dependent = _message_builder(CATEGORY_DELETE, {})
        else:
            dependent = _message_builder(category, {KEY_LABEL: intent.entity(KEY_LABEL)})

        return ExecutionPlan(
            category=category,
            primary=lookup,
            dependent=dependent,
            query=query,
            partial_on_exhaustion=category in (CATEGORY_ADD_LABEL, CATEGORY_REMOVE_LABEL),
        )
