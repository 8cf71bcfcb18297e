"\"\"\"Dependency injection container for the assessment engine.\"\"\""

from __future__ import annotations

from dependency_injector import containers, providers

from .client import AssessmentAPIClient
from .core import FlowSettings, TestFlowController, ViolationPolicy
from .pipeline import AssessmentPipeline
from .schemas.config import load_config
from .submission import ResultSubmitter


class AssessmentContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    api_client = providers.Singleton(
        AssessmentAPIClient,
        base_url=config.api.base_url,
        token=config.api.token,
        timeout=config.api.timeout,
    )

    submitter = providers.Singleton(
        ResultSubmitter,
        sink=api_client,
        resolution=config.flow.option_resolution,
        retry_attempts=config.submission.retry_attempts,
        retry_wait_min=config.submission.retry_wait_min,
        retry_wait_max=config.submission.retry_wait_max,
    )

    flow_settings = providers.Factory(
        FlowSettings,
        duration_seconds=config.timer.duration_seconds,
        submit_failure_delay=config.flow.submit_failure_delay,
        complete_notify_delay=config.flow.complete_notify_delay,
        max_violations=config.violations.max_violations,
        violation_policy=providers.Factory(ViolationPolicy, config.violations.policy),
    )

    controller = providers.Factory(
        TestFlowController,
        source=api_client,
        submitter=submitter,
        settings=flow_settings,
    )

    pipeline = providers.Factory(
        AssessmentPipeline,
        controller_factory=controller.provider,
        submitter=submitter,
    )


def create_container(*, settings: dict | None = None) -> AssessmentContainer:
    """Instantiate container with validated settings merged over the defaults."""

    container = AssessmentContainer()
    app_config = load_config(settings if isinstance(settings, dict) else {})
    container.config.from_dict(app_config.to_settings())
    return container
