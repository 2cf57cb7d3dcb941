from __future__ import annotations

import pytest

from mailbot.agents.extractor import NormalizedRecord
from mailbot.agents.intent_resolver import Intent, match_patterns
from mailbot.agents.planner import ExecutionPlanner, derive_lookup_query, sender_address
from mailbot.exceptions import DependentPreconditionError, PlanContractError


@pytest.fixture
def planner() -> ExecutionPlanner:
    return ExecutionPlanner(fetch_max_results=10, search_max_results=5)


@pytest.mark.parametrize(
    ("source", "expected"),
    [
        ("", ""),
        ("inbox", ""),
        ("spam", "in:spam"),
        ("trash", "in:trash"),
        ("sent folder", "in:sent"),
        ("john@x.com", "from:john@x.com"),
        ("Alice", "from:Alice"),
    ],
)
def test_derive_lookup_query(source: str, expected: str) -> None:
    assert derive_lookup_query(source) == expected


def test_sender_address_handles_display_names() -> None:
    assert sender_address("John Doe <john@x.com>") == "john@x.com"
    assert sender_address("john@x.com") == "john@x.com"


def test_send_plan_has_single_primary_step(planner: ExecutionPlanner) -> None:
    plan = planner.plan(match_patterns("send email to a@b.com saying hello"))
    assert plan.dependent is None
    assert plan.primary.arguments == {"recipient": "a@b.com", "subject": "Hello", "body": "hello"}
    assert [c.operation_id for c in plan.primary.candidates] == ["GMAIL_SEND_EMAIL"]


def test_fetch_and_search_use_their_own_limits(planner: ExecutionPlanner) -> None:
    fetch = planner.plan(match_patterns("show my unread emails"))
    search = planner.plan(match_patterns("search for invoices"))
    assert fetch.primary.arguments == {"query": "is:unread", "max_results": 10}
    assert search.primary.arguments == {"query": "invoices", "max_results": 5}


def test_dependent_plan_looks_up_one_record(planner: ExecutionPlanner) -> None:
    plan = planner.plan(match_patterns("delete the last email from spam"))
    assert plan.primary.arguments == {"query": "in:spam", "max_results": 1}
    assert plan.primary.candidates[0].operation_id == "GMAIL_FETCH_EMAILS"
    assert plan.partial_on_exhaustion is False

    step = plan.dependent(NormalizedRecord(identifier="m1"))
    assert step.arguments == {"message_id": "m1"}
    assert step.candidates[0].operation_id == "GMAIL_MOVE_TO_TRASH"


def test_reply_dependent_builds_recipient_and_subject(planner: ExecutionPlanner) -> None:
    plan = planner.plan(match_patterns("reply to the last email saying thanks"))
    record = NormalizedRecord(identifier="m9", sender="Jane <jane@y.com>", subject="Lunch", thread_id="t9")
    step = plan.dependent(record)
    assert step.arguments == {
        "thread_id": "t9",
        "recipient": "jane@y.com",
        "subject": "Re: Lunch",
        "body": "thanks",
    }


def test_label_plans_allow_partial_outcome(planner: ExecutionPlanner) -> None:
    plan = planner.plan(match_patterns("add label Work to the last email"))
    assert plan.partial_on_exhaustion is True
    step = plan.dependent(NormalizedRecord(identifier="m1"))
    assert step.arguments == {"message_id": "m1", "label": "Work"}


def test_dependent_without_identifier_raises(planner: ExecutionPlanner) -> None:
    plan = planner.plan(match_patterns("delete the last email"))
    with pytest.raises(DependentPreconditionError, match="No subject found for dependent action"):
        plan.dependent(NormalizedRecord(identifier=None))


def test_rejects_unplannable_intents(planner: ExecutionPlanner) -> None:
    with pytest.raises(PlanContractError):
        planner.plan(Intent(category="none"))
    with pytest.raises(PlanContractError):
        planner.plan(match_patterns("send email to a@b.com"))


def test_system_label_step_has_no_repeated_calls(planner: ExecutionPlanner) -> None:
    plan = planner.plan(match_patterns("mark the last email as unread"))
    step = plan.dependent(NormalizedRecord(identifier="m1"))

    calls = [(c.operation_id, c.build_arguments(step.arguments)) for c in step.candidates]
    assert calls == [
        ("GMAIL_ADD_LABEL_TO_EMAIL", {"message_id": "m1", "add_label_ids": ["UNREAD"]}),
        ("GMAIL_ADD_LABEL_TO_EMAIL", {"message_id": "m1", "add_label_ids": ["unread"]}),
        ("GMAIL_MODIFY_LABELS", {"message_id": "m1", "add_labels": ["UNREAD"]}),
    ]


def test_delete_step_keeps_every_alias(planner: ExecutionPlanner) -> None:
    plan = planner.plan(match_patterns("delete the last email"))
    step = plan.dependent(NormalizedRecord(identifier="m1"))
    assert len(step.candidates) == 16
