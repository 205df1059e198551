# ============================================
# 📁 core/artifact_store/store.py
# ============================================
import logging
from typing import Any, Dict, List, Optional, Sequence, Set

from deliveryflow.core.exceptions import DefinitionError, MissingArtifactError
from deliveryflow.interfaces.types.pipeline import Artifact
from deliveryflow.shared.utils import new_id, utc_now_iso

logger = logging.getLogger(__name__)


class ArtifactStore:
    """
    Append-only, per-execution registry of stage outputs.

    Artifacts are immutable handles; an artifact name can be written once per
    execution. Everything belonging to an execution is dropped by discard()
    unless the execution was marked with persist().
    """

    def __init__(self):
        self._artifacts: Dict[str, Dict[str, Artifact]] = {}
        self._persisted: Set[str] = set()

    def put(self, execution_id: str, name: str, producing_stage: str, payload_ref: str,
            metadata: Optional[Dict[str, Any]] = None) -> Artifact:
        bucket = self._artifacts.setdefault(execution_id, {})
        if name in bucket:
            raise DefinitionError(f"Artifact '{name}' was already produced", execution_id=execution_id,
                                  stage=producing_stage)
        artifact = Artifact(
            artifact_id=new_id("artifact"),
            name=name,
            producing_stage=producing_stage,
            execution_id=execution_id,
            created_at=utc_now_iso(),
            payload_ref=payload_ref,
            metadata=dict(metadata or {}),
        )
        bucket[name] = artifact
        logger.debug(f"Execution {execution_id}: stored artifact '{name}' from stage '{producing_stage}'.")
        return artifact

    def get(self, execution_id: str, name: str) -> Artifact:
        artifact = self._artifacts.get(execution_id, {}).get(name)
        if artifact is None:
            raise MissingArtifactError(name, execution_id=execution_id)
        return artifact

    def resolve(self, execution_id: str, names: Sequence[str]) -> List[Artifact]:
        return [self.get(execution_id, name) for name in names]

    def artifacts_for(self, execution_id: str) -> Dict[str, Artifact]:
        return dict(self._artifacts.get(execution_id, {}))

    def persist(self, execution_id: str) -> None:
        self._persisted.add(execution_id)

    def is_persisted(self, execution_id: str) -> bool:
        return execution_id in self._persisted

    def discard(self, execution_id: str) -> int:
        """Drops an execution's artifacts. Returns how many were removed (0 if persisted)."""
        if execution_id in self._persisted:
            logger.info(f"Execution {execution_id}: artifacts persisted, skipping discard.")
            return 0
        removed = self._artifacts.pop(execution_id, {})
        if removed:
            logger.info(f"Execution {execution_id}: discarded {len(removed)} artifact(s).")
        return len(removed)
