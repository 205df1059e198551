from .store import ArtifactStore

__all__ = ["ArtifactStore"]
