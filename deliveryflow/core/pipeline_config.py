# ========================================
# 📁 core/pipeline_config.py
# ========================================
import os
import re
import logging
from typing import Any, Dict, List, Optional, Tuple, TypedDict

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from deliveryflow.interfaces.collaborators import SecretResolver
from deliveryflow.interfaces.types.deployment import TrafficShiftStep, validate_traffic_schedule

logger = logging.getLogger(__name__)

# --- TypedDicts for configuration clarity ---

class SourceConfig(TypedDict):
    action_name: str
    owner: str
    repo: str
    branch: str
    secret_name: str


class ComputeConfig(TypedDict):
    build_image: str
    compute_type: str
    privileged: bool
    buildspec: str


class CommandsConfig(TypedDict):
    test: List[str]
    container_build: List[str]


class BlueGreenConfig(TypedDict):
    production_fleet: str
    schedule: List[Tuple[int, float]]  # (percentage, hold seconds)
    sample_interval_seconds: float
    max_unhealthy_samples: int
    retain_blue_as_standby: bool


class PipelineDefaults(TypedDict):
    pipeline_name: str
    repository_url: str
    source: SourceConfig
    compute: ComputeConfig
    commands: CommandsConfig
    blue_green: BlueGreenConfig


_DEFAULT_CONFIG: PipelineDefaults = {
    "pipeline_name": "CICD_Pipeline",
    "repository_url": "https://github.com/devops-v7/tarea3-lab4-continuous-delivery",
    "source": {
        "action_name": "GitHub_Source",
        "owner": "devops-v7",
        "repo": "tarea3-lab4-continuous-delivery",
        "branch": "main",
        "secret_name": "github/personal_access_token2",
    },
    "compute": {
        "build_image": "STANDARD_7_0",
        "compute_type": "LARGE",
        "privileged": True,  # docker-in-docker for container builds
        "buildspec": "buildspec_test.yml",
    },
    "commands": {
        "test": ["npm ci", "npm test"],
        "container_build": ["docker build -t app:latest ."],
    },
    "blue_green": {
        "production_fleet": "production",
        "schedule": [(10, 60.0), (25, 60.0), (50, 60.0), (75, 60.0), (100, 60.0)],
        "sample_interval_seconds": 10.0,
        "max_unhealthy_samples": 1,
        "retain_blue_as_standby": False,
    },
}


def get_config() -> PipelineDefaults:
    return _DEFAULT_CONFIG


def get_default_traffic_schedule() -> Tuple[TrafficShiftStep, ...]:
    return tuple(
        TrafficShiftStep(percentage=pct, hold_seconds=hold)
        for pct, hold in _DEFAULT_CONFIG["blue_green"]["schedule"]
    )


def get_stage_commands(kind: str) -> List[str]:
    return list(_DEFAULT_CONFIG["commands"].get(kind, []))  # type: ignore[misc]


# --- Resolved run configuration ---

class SourceSettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    owner: str = _DEFAULT_CONFIG["source"]["owner"]
    repo: str = _DEFAULT_CONFIG["source"]["repo"]
    branch: str = _DEFAULT_CONFIG["source"]["branch"]
    credential: Optional[SecretStr] = None

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


class ComputeProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    build_image: str = _DEFAULT_CONFIG["compute"]["build_image"]
    compute_type: str = _DEFAULT_CONFIG["compute"]["compute_type"]
    privileged: bool = _DEFAULT_CONFIG["compute"]["privileged"]
    buildspec: str = _DEFAULT_CONFIG["compute"]["buildspec"]


class RunConfig(BaseModel):
    """Everything a run needs, resolved once and passed explicitly into Orchestrator.start."""

    model_config = ConfigDict(frozen=True)

    source: SourceSettings = Field(default_factory=SourceSettings)
    compute: ComputeProfile = Field(default_factory=ComputeProfile)
    production_fleet: str = _DEFAULT_CONFIG["blue_green"]["production_fleet"]
    traffic_schedule: Tuple[TrafficShiftStep, ...] = Field(default_factory=get_default_traffic_schedule)
    health_sample_interval_seconds: float = Field(
        default=_DEFAULT_CONFIG["blue_green"]["sample_interval_seconds"], gt=0
    )
    max_unhealthy_samples: int = Field(default=_DEFAULT_CONFIG["blue_green"]["max_unhealthy_samples"], ge=1)
    require_production_approval: bool = False
    retain_blue_as_standby: bool = _DEFAULT_CONFIG["blue_green"]["retain_blue_as_standby"]
    stage_timeout_seconds: Optional[float] = Field(default=None, gt=0)
    persist_artifacts: bool = False

    @field_validator("traffic_schedule")
    @classmethod
    def _check_schedule(cls, schedule: Tuple[TrafficShiftStep, ...]) -> Tuple[TrafficShiftStep, ...]:
        validate_traffic_schedule(schedule)
        return schedule


class EnvSecretResolver:
    """Resolves secret names like 'github/personal_access_token2' from GITHUB_PERSONAL_ACCESS_TOKEN2."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self._environ = environ if environ is not None else os.environ

    @staticmethod
    def env_var_for(name: str) -> str:
        return re.sub(r"[^A-Za-z0-9]", "_", name).upper()

    def resolve(self, name: str) -> Optional[str]:
        return self._environ.get(self.env_var_for(name))


def build_run_config(settings: Any, secret_resolver: Optional[SecretResolver] = None) -> RunConfig:
    """
    Builds a RunConfig from an AppConfig-like object. Secrets are looked up exactly once, here.
    """
    defaults = get_config()
    resolver = secret_resolver or EnvSecretResolver()
    secret_name = settings.get("source_secret_name") or defaults["source"]["secret_name"]
    credential = resolver.resolve(secret_name)
    if credential is None:
        logger.warning(f"Secret '{secret_name}' could not be resolved. Source pulls will be unauthenticated.")

    source = SourceSettings(
        owner=settings.get("source_owner") or defaults["source"]["owner"],
        repo=settings.get("source_repo") or defaults["source"]["repo"],
        branch=settings.get("source_branch") or defaults["source"]["branch"],
        credential=SecretStr(credential) if credential else None,
    )
    return RunConfig(
        source=source,
        production_fleet=settings.get("production_fleet") or defaults["blue_green"]["production_fleet"],
        health_sample_interval_seconds=settings.get(
            "health_sample_interval_seconds", defaults["blue_green"]["sample_interval_seconds"]
        ),
        require_production_approval=bool(settings.get("require_production_approval", False)),
        stage_timeout_seconds=settings.get("stage_timeout_seconds"),
        persist_artifacts=bool(settings.get("persist_artifacts", False)),
    )
