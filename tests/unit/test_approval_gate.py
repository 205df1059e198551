import asyncio

import pytest

from deliveryflow.core.approval import ApprovalGate
from deliveryflow.core.exceptions import ApprovalNotPendingError


def test_open_is_idempotent_and_listed():
    gate = ApprovalGate()
    first = gate.open("execution:1", "promote")
    again = gate.open("execution:1", "other description")

    assert again is first
    assert [r.key for r in gate.pending()] == ["execution:1"]
    assert gate.is_pending("execution:1")


def test_resolve_requires_pending_checkpoint():
    gate = ApprovalGate()
    with pytest.raises(ApprovalNotPendingError):
        gate.resolve("execution:1", True)

    gate.open("execution:1")
    decision = gate.resolve("execution:1", False, approver="lead")
    assert decision.approved is False
    assert decision.approver == "lead"
    assert not gate.is_pending("execution:1")


@pytest.mark.asyncio
async def test_wait_returns_external_decision():
    gate = ApprovalGate()
    waiter = asyncio.create_task(gate.wait("deployment:prod", "promote"))
    await asyncio.sleep(0)

    gate.resolve("deployment:prod", True, approver="ops")
    decision = await waiter

    assert decision.approved and not decision.cancelled


@pytest.mark.asyncio
async def test_cancel_releases_waiter():
    gate = ApprovalGate()
    waiter = asyncio.create_task(gate.wait("deployment:prod"))
    await asyncio.sleep(0)

    assert gate.cancel("deployment:prod", reason="abort").cancelled
    decision = await waiter
    assert decision.cancelled and not decision.approved
    assert gate.cancel("deployment:prod") is None


@pytest.mark.asyncio
async def test_wait_timeout_cancels_checkpoint():
    gate = ApprovalGate()
    decision = await gate.wait("deployment:prod", timeout=0.01)
    assert decision.cancelled
    assert not gate.is_pending("deployment:prod")
