# ============================================
# 📁 bootstrap.py
# ============================================
"""
Wires an Orchestrator and its collaborators from AppConfig.
"""
from typing import Optional

from deliveryflow.clients import GitHubSourceCollaborator, HttpHealthCheck
from deliveryflow.core.alerting import AlertRouter, EmailChannel, LoggingChannel, SlackWebhookChannel
from deliveryflow.core.approval import ApprovalGate
from deliveryflow.core.artifact_store import ArtifactStore
from deliveryflow.core.blue_green import BlueGreenController
from deliveryflow.core.event_bus import EventBus
from deliveryflow.core.observability import PipelineMetrics
from deliveryflow.core.orchestrator import Orchestrator
from deliveryflow.core.pipeline_builder import features_from_config
from deliveryflow.core.pipeline_config import build_run_config
from deliveryflow.core.stage_executor import Collaborators, StageExecutor
from deliveryflow.interfaces.collaborators import SecretResolver, TrafficRouter
from deliveryflow.interfaces.types.deployment import HealthPredicate
from deliveryflow.interfaces.types.pipeline import PipelineFeatures
from deliveryflow.shared.app_config import AppConfig
from deliveryflow.shared.app_logger import get_app_logger

logger = get_app_logger("bootstrap")


def build_alert_router(settings: AppConfig, with_external_channels: bool = True) -> AlertRouter:
    router = AlertRouter()
    router.register_channel("log", LoggingChannel())
    if not with_external_channels:
        return router
    if settings.slack_webhook_url:
        router.register_channel("slack", SlackWebhookChannel(settings.slack_webhook_url))
    if settings.smtp_host and settings.alert_email_to:
        router.register_channel(
            "email",
            EmailChannel(settings.smtp_host, settings.alert_email_from, settings.alert_email_to, settings.smtp_port),
        )
    return router


def build_orchestrator(settings: AppConfig,
                       collaborators: Optional[Collaborators] = None,
                       traffic_router: Optional[TrafficRouter] = None,
                       health_check: Optional[HealthPredicate] = None,
                       features: Optional[PipelineFeatures] = None,
                       secret_resolver: Optional[SecretResolver] = None,
                       event_bus: Optional[EventBus] = None) -> Orchestrator:
    features = features or features_from_config(settings)
    collaborators = collaborators or Collaborators()
    if collaborators.source is None:
        collaborators.source = GitHubSourceCollaborator(settings.github_api_url)
    if health_check is None and settings.health_check_url:
        health_check = HttpHealthCheck(settings.health_check_url)

    alert_router = build_alert_router(settings, with_external_channels=features.with_dashboard_and_alerts)
    approval_gate = ApprovalGate()
    blue_green = None
    if traffic_router is not None:
        blue_green = BlueGreenController(traffic_router, alert_router=alert_router, approval_gate=approval_gate)
    elif features.with_blue_green_deploy:
        logger.warning("Blue/green deploy enabled without a traffic router; production deploys will fail.")

    if event_bus is None and settings.redis_url:
        event_bus = EventBus(settings.redis_url)

    return Orchestrator(
        StageExecutor(collaborators, retry_attempts=settings.collaborator_retry_attempts),
        artifact_store=ArtifactStore(),
        approval_gate=approval_gate,
        blue_green=blue_green,
        alert_router=alert_router,
        event_bus=event_bus,
        metrics=PipelineMetrics() if features.with_dashboard_and_alerts else None,
        health_check=health_check,
        default_config=build_run_config(settings, secret_resolver),
    )
