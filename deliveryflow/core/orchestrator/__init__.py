from .main_orchestrator import Orchestrator
from .state import Execution

__all__ = ["Orchestrator", "Execution"]
