"""Static table of remote operations that can realize each chat intent.

Several remote operation identifiers address the same logical action but
disagree on parameter naming, so every candidate carries a map from the
pipeline's canonical argument keys to the parameter names that specific
operation expects.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping

CATEGORY_SEND = "send"
CATEGORY_CREATE_DRAFT = "create_draft"
CATEGORY_FETCH = "fetch"
CATEGORY_REPLY = "reply"
CATEGORY_DELETE = "delete"
CATEGORY_LIST_DRAFTS = "list_drafts"
CATEGORY_LIST_LABELS = "list_labels"
CATEGORY_ADD_LABEL = "add_label"
CATEGORY_REMOVE_LABEL = "remove_label"
CATEGORY_SEARCH = "search"
CATEGORY_NONE = "none"

DEPENDENT_CATEGORIES = frozenset(
    {CATEGORY_REPLY, CATEGORY_DELETE, CATEGORY_ADD_LABEL, CATEGORY_REMOVE_LABEL}
)

# Canonical argument keys shared by planner and candidates.
KEY_RECIPIENT = "recipient"
KEY_SUBJECT = "subject"
KEY_BODY = "body"
KEY_QUERY = "query"
KEY_MAX_RESULTS = "max_results"
KEY_THREAD_ID = "thread_id"
KEY_MESSAGE_ID = "message_id"
KEY_LABEL = "label"

LABEL_CASE_UPPER = "upper"
LABEL_CASE_LOWER = "lower"


@dataclass(frozen=True)
class OperationCandidate:
    """One remote operation plus the argument naming it expects."""

    operation_id: str
    argument_alias_map: Mapping[str, str]
    list_arguments: frozenset[str] = frozenset()
    fixed_arguments: Mapping[str, Any] = field(default_factory=dict)
    label_case: str | None = None

    @property
    def canonical_keys(self) -> tuple[str, ...]:
        return tuple(self.argument_alias_map)

    def build_arguments(self, canonical: Mapping[str, Any]) -> dict[str, Any]:
        """Translate canonical arguments into this operation's parameter names."""

        arguments: dict[str, Any] = copy.deepcopy(dict(self.fixed_arguments))
        for key, param in self.argument_alias_map.items():
            value = canonical.get(key)
            if value is None:
                continue
            if key == KEY_LABEL and isinstance(value, str):
                if self.label_case == LABEL_CASE_UPPER:
                    value = value.upper()
                elif self.label_case == LABEL_CASE_LOWER:
                    value = value.lower()
            if param in self.list_arguments and not isinstance(value, list):
                value = [value]
            arguments[param] = value
        return arguments


def _label_variants(
    operation_id: str,
    alias_map: Mapping[str, str],
    *,
    list_arguments: frozenset[str] = frozenset(),
) -> list[OperationCandidate]:
    # Label ids are case sensitive for user labels but system labels are upper case.
    return [
        OperationCandidate(operation_id, alias_map, list_arguments, label_case=case)
        for case in (LABEL_CASE_UPPER, LABEL_CASE_LOWER, None)
    ]


_FETCH = (
    OperationCandidate(
        "GMAIL_FETCH_EMAILS",
        {KEY_QUERY: "query", KEY_MAX_RESULTS: "max_results"},
    ),
)

_MESSAGE_ID_ONLY = {KEY_MESSAGE_ID: "message_id"}
_GMAIL_ID_ONLY = {KEY_MESSAGE_ID: "gmail_id"}

_CANDIDATES: dict[str, tuple[OperationCandidate, ...]] = {
    CATEGORY_FETCH: _FETCH,
    CATEGORY_SEARCH: _FETCH,
    CATEGORY_SEND: (
        OperationCandidate(
            "GMAIL_SEND_EMAIL",
            {KEY_RECIPIENT: "recipient_email", KEY_SUBJECT: "subject", KEY_BODY: "body"},
        ),
    ),
    CATEGORY_CREATE_DRAFT: (
        OperationCandidate(
            "GMAIL_CREATE_EMAIL_DRAFT",
            {KEY_RECIPIENT: "recipient_email", KEY_SUBJECT: "subject", KEY_BODY: "body"},
        ),
    ),
    CATEGORY_REPLY: (
        OperationCandidate(
            "GMAIL_REPLY_TO_THREAD",
            {KEY_THREAD_ID: "thread_id", KEY_RECIPIENT: "recipient_email", KEY_BODY: "message_body"},
        ),
        OperationCandidate(
            "GMAIL_SEND_EMAIL",
            {
                KEY_RECIPIENT: "recipient_email",
                KEY_SUBJECT: "subject",
                KEY_BODY: "body",
                KEY_THREAD_ID: "thread_id",
            },
        ),
    ),
    CATEGORY_DELETE: (
        OperationCandidate("GMAIL_MOVE_TO_TRASH", _MESSAGE_ID_ONLY),
        OperationCandidate("GMAIL_MOVE_TO_TRASH", _GMAIL_ID_ONLY),
        OperationCandidate("GMAIL_TRASH_EMAIL", _GMAIL_ID_ONLY),
        OperationCandidate("GMAIL_DELETE_MESSAGE", _MESSAGE_ID_ONLY),
        OperationCandidate("GMAIL_DELETE_MESSAGE", _GMAIL_ID_ONLY),
        OperationCandidate("GMAIL_DELETE_EMAIL", _GMAIL_ID_ONLY),
        OperationCandidate(
            "GMAIL_ADD_LABEL_TO_EMAIL",
            _MESSAGE_ID_ONLY,
            fixed_arguments={"add_label_ids": ["TRASH"]},
        ),
        OperationCandidate("GMAIL_MODIFY_LABELS", _MESSAGE_ID_ONLY, fixed_arguments={"add_labels": ["TRASH"]}),
        OperationCandidate("GMAIL_MODIFY_LABELS", _GMAIL_ID_ONLY, fixed_arguments={"add_labels": ["TRASH"]}),
        OperationCandidate("GMAIL_ADD_LABELS", _MESSAGE_ID_ONLY, fixed_arguments={"labels": ["TRASH"]}),
        OperationCandidate("GMAIL_ADD_LABELS", _GMAIL_ID_ONLY, fixed_arguments={"labels": ["TRASH"]}),
        # Archiving keeps the message but clears it from the inbox.
        OperationCandidate("GMAIL_ARCHIVE_EMAIL", _GMAIL_ID_ONLY),
        OperationCandidate("GMAIL_ARCHIVE_EMAIL", _MESSAGE_ID_ONLY),
        OperationCandidate(
            "GMAIL_ADD_LABEL_TO_EMAIL",
            _MESSAGE_ID_ONLY,
            fixed_arguments={"remove_label_ids": ["INBOX"]},
        ),
        OperationCandidate("GMAIL_MODIFY_LABELS", _MESSAGE_ID_ONLY, fixed_arguments={"remove_labels": ["INBOX"]}),
        OperationCandidate("GMAIL_MODIFY_LABELS", _GMAIL_ID_ONLY, fixed_arguments={"remove_labels": ["INBOX"]}),
    ),
    CATEGORY_LIST_DRAFTS: (
        OperationCandidate("GMAIL_LIST_DRAFTS", {KEY_MAX_RESULTS: "max_results"}),
    ),
    CATEGORY_LIST_LABELS: (
        OperationCandidate("GMAIL_LIST_LABELS", {}),
    ),
    CATEGORY_ADD_LABEL: tuple(
        _label_variants(
            "GMAIL_ADD_LABEL_TO_EMAIL",
            {KEY_MESSAGE_ID: "message_id", KEY_LABEL: "add_label_ids"},
            list_arguments=frozenset({"add_label_ids"}),
        )
        + [
            OperationCandidate(
                "GMAIL_MODIFY_LABELS",
                {KEY_MESSAGE_ID: "message_id", KEY_LABEL: "add_labels"},
                frozenset({"add_labels"}),
                label_case=LABEL_CASE_UPPER,
            ),
        ]
    ),
    CATEGORY_REMOVE_LABEL: tuple(
        _label_variants(
            "GMAIL_REMOVE_LABEL",
            {KEY_MESSAGE_ID: "message_id", KEY_LABEL: "label_id"},
        )
        + _label_variants(
            "GMAIL_ADD_LABEL_TO_EMAIL",
            {KEY_MESSAGE_ID: "message_id", KEY_LABEL: "remove_label_ids"},
            list_arguments=frozenset({"remove_label_ids"}),
        )
    ),
}

# When an operation realizes several categories, the earliest listed wins.
_REVERSE_LOOKUP_ORDER = (
    CATEGORY_SEND,
    CATEGORY_CREATE_DRAFT,
    CATEGORY_FETCH,
    CATEGORY_REPLY,
    CATEGORY_LIST_DRAFTS,
    CATEGORY_LIST_LABELS,
    CATEGORY_ADD_LABEL,
    CATEGORY_REMOVE_LABEL,
    CATEGORY_DELETE,
)


def candidates_for(category: str) -> tuple[OperationCandidate, ...]:
    """Return the ordered candidates for ``category`` (empty for unknown categories)."""

    return _CANDIDATES.get(category, ())


def distinct_candidates(
    candidates: tuple[OperationCandidate, ...], canonical: Mapping[str, Any]
) -> tuple[OperationCandidate, ...]:
    """Drop candidates that would repeat an earlier (operation, arguments) call.

    Label case variants collapse when the label is already upper or lower case.
    """

    seen: list[tuple[str, dict[str, Any]]] = []
    kept: list[OperationCandidate] = []
    for candidate in candidates:
        call = (candidate.operation_id, candidate.build_arguments(canonical))
        if call in seen:
            continue
        seen.append(call)
        kept.append(candidate)
    return tuple(kept)


def known_operation_ids() -> list[str]:
    """All distinct operation identifiers referenced by the table, in table order."""

    seen: dict[str, None] = {}
    for candidates in _CANDIDATES.values():
        for candidate in candidates:
            seen.setdefault(candidate.operation_id, None)
    return list(seen)


def reverse_lookup(operation_id: str) -> tuple[str, OperationCandidate] | None:
    """Find the category and candidate an operation identifier belongs to."""

    normalized = operation_id.strip().upper()
    for category in _REVERSE_LOOKUP_ORDER:
        for candidate in _CANDIDATES[category]:
            if candidate.operation_id == normalized:
                return category, candidate
    return None
