from .github_source import GitHubSourceCollaborator
from .health import HttpHealthCheck

__all__ = ["GitHubSourceCollaborator", "HttpHealthCheck"]
