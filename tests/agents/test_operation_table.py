from __future__ import annotations

from mailbot.agents.operation_table import (
    candidates_for,
    distinct_candidates,
    known_operation_ids,
    reverse_lookup,
)


def test_every_category_has_candidates() -> None:
    for category in (
        "send",
        "create_draft",
        "fetch",
        "search",
        "reply",
        "delete",
        "list_drafts",
        "list_labels",
        "add_label",
        "remove_label",
    ):
        assert candidates_for(category), category


def test_unknown_category_has_no_candidates() -> None:
    assert candidates_for("none") == ()


def test_delete_priority_order() -> None:
    calls = [(c.operation_id, c.build_arguments({"message_id": "m1"})) for c in candidates_for("delete")]
    assert calls == [
        ("GMAIL_MOVE_TO_TRASH", {"message_id": "m1"}),
        ("GMAIL_MOVE_TO_TRASH", {"gmail_id": "m1"}),
        ("GMAIL_TRASH_EMAIL", {"gmail_id": "m1"}),
        ("GMAIL_DELETE_MESSAGE", {"message_id": "m1"}),
        ("GMAIL_DELETE_MESSAGE", {"gmail_id": "m1"}),
        ("GMAIL_DELETE_EMAIL", {"gmail_id": "m1"}),
        ("GMAIL_ADD_LABEL_TO_EMAIL", {"message_id": "m1", "add_label_ids": ["TRASH"]}),
        ("GMAIL_MODIFY_LABELS", {"message_id": "m1", "add_labels": ["TRASH"]}),
        ("GMAIL_MODIFY_LABELS", {"gmail_id": "m1", "add_labels": ["TRASH"]}),
        ("GMAIL_ADD_LABELS", {"message_id": "m1", "labels": ["TRASH"]}),
        ("GMAIL_ADD_LABELS", {"gmail_id": "m1", "labels": ["TRASH"]}),
        ("GMAIL_ARCHIVE_EMAIL", {"gmail_id": "m1"}),
        ("GMAIL_ARCHIVE_EMAIL", {"message_id": "m1"}),
        ("GMAIL_ADD_LABEL_TO_EMAIL", {"message_id": "m1", "remove_label_ids": ["INBOX"]}),
        ("GMAIL_MODIFY_LABELS", {"message_id": "m1", "remove_labels": ["INBOX"]}),
        ("GMAIL_MODIFY_LABELS", {"gmail_id": "m1", "remove_labels": ["INBOX"]}),
    ]
    assert len({(op, tuple(sorted(args))) for op, args in calls}) == len(calls)


def test_alias_map_renames_canonical_keys() -> None:
    reply = candidates_for("reply")[0]
    args = reply.build_arguments({"thread_id": "t1", "recipient": "a@b.com", "body": "hi", "subject": "Re: x"})
    assert args == {"thread_id": "t1", "recipient_email": "a@b.com", "message_body": "hi"}


def test_fixed_arguments_are_copied_not_shared() -> None:
    trash_label = candidates_for("delete")[6]
    first = trash_label.build_arguments({"message_id": "m1"})
    first["add_label_ids"].append("SPAM")
    second = trash_label.build_arguments({"message_id": "m2"})
    assert second == {"add_label_ids": ["TRASH"], "message_id": "m2"}


def test_label_case_variants() -> None:
    variants = [c.build_arguments({"message_id": "m", "label": "Work"}) for c in candidates_for("remove_label")[:3]]
    assert [v["label_id"] for v in variants] == ["WORK", "work", "Work"]


def test_reverse_lookup_prefers_send_for_shared_operation() -> None:
    category, candidate = reverse_lookup("gmail_send_email")
    assert category == "send"
    assert "thread_id" not in candidate.argument_alias_map


def test_reverse_lookup_unknown() -> None:
    assert reverse_lookup("SLACK_POST") is None


def test_known_operation_ids_are_unique() -> None:
    ids = known_operation_ids()
    assert len(ids) == len(set(ids))
    assert "GMAIL_FETCH_EMAILS" in ids


def test_distinct_candidates_collapses_identical_label_calls() -> None:
    kept = distinct_candidates(candidates_for("add_label"), {"message_id": "m1", "label": "UNREAD"})
    assert [c.build_arguments({"message_id": "m1", "label": "UNREAD"}) for c in kept] == [
        {"message_id": "m1", "add_label_ids": ["UNREAD"]},
        {"message_id": "m1", "add_label_ids": ["unread"]},
        {"message_id": "m1", "add_labels": ["UNREAD"]},
    ]


def test_distinct_candidates_keeps_mixed_case_variants() -> None:
    candidates = candidates_for("add_label")
    assert distinct_candidates(candidates, {"message_id": "m1", "label": "Work"}) == candidates
