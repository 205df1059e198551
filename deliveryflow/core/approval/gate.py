# ==================================
# 📁 core/approval/gate.py
# ==================================
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel

from deliveryflow.core.exceptions import ApprovalNotPendingError
from deliveryflow.shared.utils import utc_now_iso

logger = logging.getLogger(__name__)


class ApprovalRequest(BaseModel):
    key: str
    description: str = ""
    opened_at: str


class ApprovalDecision(BaseModel):
    key: str
    approved: bool
    approver: Optional[str] = None
    cancelled: bool = False
    reason: Optional[str] = None
    decided_at: str


@dataclass
class _PendingApproval:
    request: ApprovalRequest
    resolved: asyncio.Event = field(default_factory=asyncio.Event)
    decision: Optional[ApprovalDecision] = None


class ApprovalGate:
    """
    Blocking checkpoints that need an explicit external decision.

    A checkpoint is opened under a key, then either resolved (approved or
    rejected) or cancelled by an abort request. Callers may poll with
    is_pending() or block in wait().
    """

    def __init__(self):
        self._pending: Dict[str, _PendingApproval] = {}

    def open(self, key: str, description: str = "") -> ApprovalRequest:
        existing = self._pending.get(key)
        if existing:
            return existing.request
        request = ApprovalRequest(key=key, description=description, opened_at=utc_now_iso())
        self._pending[key] = _PendingApproval(request=request)
        logger.info(f"Approval requested: '{key}' {description}".rstrip())
        return request

    def is_pending(self, key: str) -> bool:
        return key in self._pending

    def pending(self) -> List[ApprovalRequest]:
        return [entry.request for entry in self._pending.values()]

    def resolve(self, key: str, approved: bool, approver: Optional[str] = None) -> ApprovalDecision:
        decision = ApprovalDecision(key=key, approved=approved, approver=approver, decided_at=utc_now_iso())
        self._settle(key, decision)
        logger.info(f"Approval '{key}' {'granted' if approved else 'rejected'} by {approver or 'unknown'}.")
        return decision

    def cancel(self, key: str, reason: str = "abort requested") -> Optional[ApprovalDecision]:
        if key not in self._pending:
            return None
        decision = ApprovalDecision(key=key, approved=False, cancelled=True, reason=reason, decided_at=utc_now_iso())
        self._settle(key, decision)
        logger.info(f"Approval '{key}' cancelled: {reason}")
        return decision

    async def wait(self, key: str, description: str = "", timeout: Optional[float] = None) -> ApprovalDecision:
        """Opens the checkpoint if needed and blocks until it is resolved or cancelled."""
        self.open(key, description)
        entry = self._pending[key]
        try:
            await asyncio.wait_for(entry.resolved.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Approval '{key}' timed out after {timeout}s.")
            self.cancel(key, reason=f"no decision within {timeout}s")
        return entry.decision

    def _settle(self, key: str, decision: ApprovalDecision) -> None:
        entry = self._pending.pop(key, None)
        if entry is None:
            raise ApprovalNotPendingError(f"No pending approval for '{key}'")
        entry.decision = decision
        entry.resolved.set()
