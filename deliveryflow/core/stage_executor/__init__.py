from .executor import Collaborators, StageContext, StageExecutor

__all__ = ["Collaborators", "StageContext", "StageExecutor"]
