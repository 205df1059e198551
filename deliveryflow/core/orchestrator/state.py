"""
state.py

Execution state for one run of a pipeline. Owned and mutated by the Orchestrator;
everyone else sees deep copies.
"""
from typing import Dict, Optional

from pydantic import BaseModel, Field

from deliveryflow.interfaces.types.common import TERMINAL_STATUSES, AlertReason, ExecutionStatus
from deliveryflow.interfaces.types.pipeline import Artifact, StageOutcome


class Execution(BaseModel):
    execution_id: str
    pipeline_name: str

    status: ExecutionStatus = ExecutionStatus.RUNNING
    current_stage_index: int = 0
    stage_outcomes: Dict[str, StageOutcome] = Field(default_factory=dict)  # stage name -> outcome
    artifacts: Dict[str, Artifact] = Field(default_factory=dict)  # artifact name -> handle

    started_at: str  # ISO 8601 UTC timestamp
    updated_at: str
    completed_at: Optional[str] = None

    termination_reason: Optional[AlertReason] = None
    error_message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
