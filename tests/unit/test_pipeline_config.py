import pytest
from pydantic import ValidationError

from deliveryflow.core.pipeline_config import (
    EnvSecretResolver,
    RunConfig,
    build_run_config,
    get_default_traffic_schedule,
)
from deliveryflow.interfaces.types.deployment import TrafficShiftStep


def test_default_schedule():
    assert [(s.percentage, s.hold_seconds) for s in get_default_traffic_schedule()] == [
        (10, 60.0), (25, 60.0), (50, 60.0), (75, 60.0), (100, 60.0)
    ]


def test_run_config_rejects_schedule_not_ending_at_full_traffic():
    with pytest.raises(ValidationError):
        RunConfig(traffic_schedule=(TrafficShiftStep(percentage=50, hold_seconds=1),))


def test_env_secret_resolver_maps_names_to_env_vars():
    resolver = EnvSecretResolver({"GITHUB_PERSONAL_ACCESS_TOKEN2": "ghp_x"})
    assert EnvSecretResolver.env_var_for("github/personal_access_token2") == "GITHUB_PERSONAL_ACCESS_TOKEN2"
    assert resolver.resolve("github/personal_access_token2") == "ghp_x"
    assert resolver.resolve("other") is None


def test_build_run_config_resolves_secret_once():
    class CountingResolver:
        def __init__(self):
            self.names = []

        def resolve(self, name):
            self.names.append(name)
            return "token"

    resolver = CountingResolver()
    settings = {"source_owner": "acme", "source_repo": "shop", "production_fleet": "eu-prod",
                "stage_timeout_seconds": 120.0, "persist_artifacts": True}

    config = build_run_config(settings, resolver)

    assert resolver.names == ["github/personal_access_token2"]
    assert config.source.repository == "acme/shop"
    assert config.source.branch == "main"
    assert config.source.credential.get_secret_value() == "token"
    assert "token" not in repr(config)
    assert config.production_fleet == "eu-prod"
    assert config.stage_timeout_seconds == 120.0
    assert config.persist_artifacts is True


def test_build_run_config_without_secret():
    config = build_run_config({}, EnvSecretResolver({}))
    assert config.source.credential is None
    assert config.source.repository == "devops-v7/tarea3-lab4-continuous-delivery"
