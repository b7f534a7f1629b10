import pytest

from deskwatch.core import ResourceNotFoundException, ValidationException
from deskwatch.priority.application import PriorityDecisionService, PriorityReviewService
from deskwatch.priority.domain import PriorityPolicy

LOGIN = ("Cannot login to email", "Since this morning I cannot login to my mailbox, please advise.")
OUTAGE = ("Server down", "The main server down since 8am.")


@pytest.fixture
def decisions(inference_repo, history_repo):
    return PriorityDecisionService(
        PriorityPolicy(), inference_repository=inference_repo, history_repository=history_repo
    )


@pytest.fixture
def reviews(inference_repo, history_repo):
    return PriorityReviewService(inference_repo, history_repo)


async def _record(decisions, text=LOGIN, ticket_id="T-7"):
    decision = await decisions.decide(*text)
    return (await decisions.record_decision(ticket_id, decision)).value


async def test_pending_decision_starts_at_medium(decisions, history_repo):
    record = await _record(decisions)

    assert record.needs_review is True
    assert record.applied_priority_code == "medium"
    assert history_repo.entries[0].new_priority_code == "medium"


async def test_apply_predicted_changes_priority(decisions, reviews, history_repo):
    record = await _record(decisions)

    outcome = (await reviews.review(record.id, "apply_predicted", "rev-1")).value

    assert outcome.applied_priority_code == "high"
    assert outcome.priority_changed is True
    assert outcome.reviewed_at is not None
    entry = history_repo.entries[-1]
    assert (entry.old_priority_code, entry.new_priority_code) == ("medium", "high")
    assert entry.change_source == "manual"
    assert entry.reason == "AI review decision: apply_predicted"
    assert entry.inference_id == record.id


async def test_approve_keeps_applied_priority(decisions, reviews, history_repo, inference_repo):
    record = await _record(decisions)

    outcome = (await reviews.review(record.id, "approve", "rev-1")).value

    assert outcome.applied_priority_code == "medium"
    assert outcome.priority_changed is False
    assert len(history_repo.entries) == 1
    stored = inference_repo.records[record.id]
    assert stored.needs_review is False
    assert stored.reviewed_by_user_id == "rev-1"


async def test_override_uses_reviewer_code_and_reason(decisions, reviews, history_repo):
    record = await _record(decisions)

    outcome = (await reviews.review(record.id, "override", "rev-1", priority_code="LOW", reason="  printer only  ")).value

    assert outcome.applied_priority_code == "low"
    assert history_repo.entries[-1].reason == "printer only"


async def test_override_requires_valid_code(decisions, reviews):
    record = await _record(decisions)

    with pytest.raises(ValidationException):
        await reviews.review(record.id, "override", "rev-1")
    with pytest.raises(ValidationException):
        await reviews.review(record.id, "override", "rev-1", priority_code="urgent")


async def test_unknown_action_is_rejected(decisions, reviews):
    record = await _record(decisions)

    with pytest.raises(ValidationException):
        await reviews.review(record.id, "escalate", "rev-1")


async def test_unknown_inference_is_not_found(reviews):
    with pytest.raises(ResourceNotFoundException):
        await reviews.review(404, "approve", "rev-1")


async def test_previous_priority_comes_from_history(decisions, reviews, history_repo):
    first = await _record(decisions, OUTAGE)
    second = await _record(decisions, LOGIN)

    outcome = (await reviews.review(second.id, "approve", "rev-1")).value

    # The ticket went critical -> medium when the second decision was recorded
    assert [e.new_priority_code for e in history_repo.entries] == ["critical", "medium"]
    assert outcome.priority_changed is False
    assert first.applied_priority_code == "critical"


async def test_metrics(decisions, reviews):
    await _record(decisions, OUTAGE, ticket_id="T-1")
    pending = await _record(decisions, LOGIN, ticket_id="T-2")
    overridden = await _record(decisions, LOGIN, ticket_id="T-3")
    await reviews.review(overridden.id, "override", "rev-1", priority_code="low")

    metrics = (await reviews.metrics()).value

    assert metrics.total == 3
    assert metrics.pending_review == 1
    assert metrics.reviewed == 2
    # auto-applied critical agrees; override to low disagrees with "high"
    assert metrics.reviewed_agreed == 1
    assert metrics.agreement_rate == 0.5
    assert metrics.by_intake_source == {"portal": 3}
    assert pending.needs_review is True
