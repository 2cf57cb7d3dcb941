"""Render chat replies from normalized results.

All functions here are pure: the same inputs always render the same text.
"""

from __future__ import annotations

from typing import Mapping

from mailbot.agents.extractor import NormalizedLabel, NormalizedListing, NormalizedRecord, UNKNOWN_SENDER
from mailbot.agents.operation_table import (
    CATEGORY_ADD_LABEL,
    CATEGORY_CREATE_DRAFT,
    CATEGORY_DELETE,
    CATEGORY_FETCH,
    CATEGORY_LIST_DRAFTS,
    CATEGORY_LIST_LABELS,
    CATEGORY_REMOVE_LABEL,
    CATEGORY_REPLY,
    CATEGORY_SEARCH,
    CATEGORY_SEND,
    KEY_LABEL,
    KEY_QUERY,
    KEY_RECIPIENT,
)

OUTCOME_SUCCESS = "success"
OUTCOME_FAILED = "failed"
OUTCOME_UNSUPPORTED = "unsupported"

DISPLAY_LIMIT = 5
MESSAGE_PREVIEW_CHARS = 100
DRAFT_PREVIEW_CHARS = 80

_ACTION_NAMES = {
    CATEGORY_REPLY: "reply to",
    CATEGORY_DELETE: "delete",
    CATEGORY_ADD_LABEL: "label",
    CATEGORY_REMOVE_LABEL: "update",
}

_SCOPE_NAMES = {"": "inbox", "is:unread": "unread"}


def _preview(text: str, limit: int) -> str:
    return text[:limit].replace("\r\n", " ").replace("\n", " ").strip()


def _scope_name(query: str) -> str:
    if query in _SCOPE_NAMES:
        return _SCOPE_NAMES[query]
    if query.startswith("in:"):
        return query[3:]
    return "search"


def _is_search(category: str, query: str) -> bool:
    return category == CATEGORY_SEARCH or _scope_name(query) == "search"


def _more_line(total: int, shown: int) -> str:
    return f"... and {total - shown} more messages" if total > shown else ""


def format_message_list(listing: NormalizedListing, *, category: str, query: str) -> str:
    if _is_search(category, query):
        if listing.total == 0:
            return f'🔍 No emails found matching "{query}"'
        header = f'🔍 Found {listing.total} emails matching "{query}":'
    else:
        scope = _scope_name(query)
        if listing.total == 0:
            return f"📭 No {scope} messages found"
        header = f"📧 Found {listing.total} {scope} messages:"

    shown = [r for r in listing.records[:DISPLAY_LIMIT] if isinstance(r, NormalizedRecord)]
    blocks = [header]
    for index, record in enumerate(shown, start=1):
        blocks.append(
            f"{index}. **From:** {record.sender}\n"
            f"   **Subject:** {record.subject}\n"
            f"   **Preview:** {_preview(record.snippet, MESSAGE_PREVIEW_CHARS)}...\n"
            f"   **Date:** {record.date}"
        )
    more = _more_line(listing.total, len(shown))
    if more:
        blocks.append(more)
    return "\n\n".join(blocks)


def format_draft_list(listing: NormalizedListing) -> str:
    if listing.total == 0:
        return "📝 No draft messages found"
    shown = [r for r in listing.records[:DISPLAY_LIMIT] if isinstance(r, NormalizedRecord)]
    blocks = [f"📝 Found {listing.total} draft messages:"]
    for index, record in enumerate(shown, start=1):
        blocks.append(
            f"{index}. **Subject:** {record.subject}\n"
            f"   **Draft ID:** {record.identifier or 'Unknown ID'}\n"
            f"   **Preview:** {_preview(record.snippet, DRAFT_PREVIEW_CHARS)}...\n"
            f"   **Date:** {record.date}"
        )
    more = _more_line(listing.total, len(shown))
    if more:
        blocks.append(more)
    return "\n\n".join(blocks)


def format_label_list(listing: NormalizedListing) -> str:
    labels = [r for r in listing.records if isinstance(r, NormalizedLabel)]
    if not labels:
        return "🏷️ No labels found"
    blocks = [f"🏷️ Found {len(labels)} labels:"]
    for index, label in enumerate(labels, start=1):
        count = label.message_count if label.message_count is not None else "Unknown"
        blocks.append(
            f"{index}. **{label.name}**\n"
            f"   **ID:** {label.identifier or 'Unknown ID'}\n"
            f"   **Type:** {label.label_type or 'user'}\n"
            f"   **Messages:** {count}"
        )
    return "\n\n".join(blocks)


def format_failure(error: str | None) -> str:
    return f"❌ Failed to execute command: {error or 'Unknown error'}"


def format_target_failure(category: str, target: NormalizedRecord, error: str | None) -> str:
    action = _ACTION_NAMES.get(category, "act on")
    return (
        f"❌ Could not {action} the email from {target.sender} ({target.subject}): "
        f"{error or 'Unknown error'}"
    )


def format_no_target(category: str) -> str:
    return f"❌ No message found to {_ACTION_NAMES.get(category, 'act on')}"


def format_clarification(category: str, missing_entity: str) -> str:
    prompts = {
        KEY_RECIPIENT: "Who should I send it to? Please include the recipient's email address.",
        "body": "What should the message say?",
        KEY_LABEL: "Which label should I use?",
        KEY_QUERY: "What should I search for?",
    }
    question = prompts.get(missing_entity, f"Please provide the {missing_entity}.")
    return f"I need a bit more information to {category.replace('_', ' ')}: {question}"


def format_reply(
    category: str,
    *,
    listing: NormalizedListing | None = None,
    outcome: str = OUTCOME_SUCCESS,
    target: NormalizedRecord | None = None,
    entities: Mapping[str, object] | None = None,
    query: str = "",
    error: str | None = None,
) -> str:
    """Render the final chat reply for one executed plan."""

    entities = entities or {}
    listing = listing or NormalizedListing()
    if outcome == OUTCOME_FAILED:
        if target is not None and category in _ACTION_NAMES:
            return format_target_failure(category, target, error)
        return format_failure(error)

    sender = target.sender if target is not None else UNKNOWN_SENDER
    label = str(entities.get(KEY_LABEL) or "Unknown Label")

    if category == CATEGORY_SEND:
        return f"✅ Email sent to {entities.get(KEY_RECIPIENT) or 'recipient'}"
    if category == CATEGORY_CREATE_DRAFT:
        return f"📝 Draft created for {entities.get(KEY_RECIPIENT) or 'recipient'}"
    if category == CATEGORY_REPLY:
        subject = target.subject if target is not None else "last email"
        return f"✅ Replied to {sender} ({subject})"
    if category == CATEGORY_DELETE:
        return f"🗑️ Email processed (moved to trash/archived) from {sender}"
    if category == CATEGORY_ADD_LABEL:
        if outcome == OUTCOME_UNSUPPORTED:
            return (
                f"⚠️ Label management not available in current Gmail toolkit. However, I found the "
                f'email from {sender} that would be marked as "{label}". You can manually add this label in Gmail.'
            )
        return f'🏷️ Added label "{label}" to email from {sender}'
    if category == CATEGORY_REMOVE_LABEL:
        if outcome == OUTCOME_UNSUPPORTED:
            return (
                f"⚠️ Label management not available in current Gmail toolkit. However, I found the "
                f'email from {sender} that would have label "{label}" removed. '
                "You can manually remove this label in Gmail."
            )
        return f'🏷️ Removed label "{label}" from email from {sender}'
    if category == CATEGORY_LIST_LABELS:
        return format_label_list(listing)
    if category == CATEGORY_LIST_DRAFTS:
        return format_draft_list(listing)
    if category in (CATEGORY_FETCH, CATEGORY_SEARCH):
        return format_message_list(listing, category=category, query=query)
    return "✅ Done"
