# ========================================
# 📁 core/pipeline_builder.py
# ========================================
"""
Builds the delivery pipeline definition from feature flags.

One builder covers every environment: unit tests only, tests plus a docker
build and test deployment, and the full flow with an approved blue/green
production cutover.
"""
import logging
from typing import Any, List, Optional

from deliveryflow.core.exceptions import DefinitionError
from deliveryflow.core.pipeline_config import get_config, get_stage_commands
from deliveryflow.interfaces.types.common import DeployStrategy, StageKind
from deliveryflow.interfaces.types.pipeline import PipelineDefinition, PipelineFeatures, Stage

logger = logging.getLogger(__name__)

SOURCE_OUTPUT = "source_output"
UNIT_TEST_OUTPUT = "unit_test_output"
DOCKER_IMAGE = "docker_image"
TEST_DEPLOYMENT = "test_deployment"
PRODUCTION_DEPLOYMENT = "production_deployment"


def features_from_config(settings: Any) -> PipelineFeatures:
    return PipelineFeatures(
        unit_test_only=bool(settings.get("unit_test_only", False)),
        with_docker_build=bool(settings.get("with_docker_build", False)),
        with_blue_green_deploy=bool(settings.get("with_blue_green_deploy", False)),
        with_dashboard_and_alerts=bool(settings.get("with_dashboard_and_alerts", False)),
    )


def _check_features(features: PipelineFeatures) -> None:
    if features.unit_test_only and (
        features.with_docker_build or features.with_blue_green_deploy or features.with_dashboard_and_alerts
    ):
        raise DefinitionError("unit_test_only cannot be combined with other pipeline features")
    if features.with_blue_green_deploy and not features.with_docker_build:
        raise DefinitionError("with_blue_green_deploy requires with_docker_build")


def build_pipeline_definition(features: Optional[PipelineFeatures] = None,
                              name: Optional[str] = None,
                              production_fleet: Optional[str] = None) -> PipelineDefinition:
    features = features or PipelineFeatures()
    _check_features(features)
    defaults = get_config()

    stages: List[Stage] = [
        Stage(
            name="Source",
            kind=StageKind.SOURCE,
            output=SOURCE_OUTPUT,
            parameters={"action": defaults["source"]["action_name"]},
        ),
        Stage(
            name="Unit-Test",
            kind=StageKind.TEST,
            inputs=(SOURCE_OUTPUT,),
            output=UNIT_TEST_OUTPUT,
            commands=tuple(get_stage_commands("test")),
            parameters={"buildspec": defaults["compute"]["buildspec"]},
        ),
    ]

    if features.with_docker_build:
        stages += [
            Stage(
                name="Docker-Build",
                kind=StageKind.CONTAINER_BUILD,
                inputs=(SOURCE_OUTPUT,),
                output=DOCKER_IMAGE,
                commands=tuple(get_stage_commands("container_build")),
            ),
            Stage(
                name="Deploy-Test",
                kind=StageKind.DEPLOY,
                inputs=(DOCKER_IMAGE,),
                output=TEST_DEPLOYMENT,
            ),
        ]

    if features.with_blue_green_deploy:
        fleet = production_fleet or defaults["blue_green"]["production_fleet"]
        stages += [
            Stage(
                name="Approve-Production",
                kind=StageKind.APPROVAL,
                parameters={"description": f"Promote the tested image to the '{fleet}' fleet"},
            ),
            Stage(
                name="Deploy-Production",
                kind=StageKind.DEPLOY,
                inputs=(DOCKER_IMAGE,),
                output=PRODUCTION_DEPLOYMENT,
                deploy_strategy=DeployStrategy.BLUE_GREEN,
                parameters={"fleet": fleet},
            ),
        ]

    definition = PipelineDefinition(name=name or defaults["pipeline_name"], stages=tuple(stages), features=features)
    logger.debug(f"Built pipeline '{definition.name}': {' -> '.join(definition.stage_names())}")
    return definition
