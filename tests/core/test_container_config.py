from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from hrassessment.config import ConfigManager
from hrassessment.container import create_container
from hrassessment.core import TestFlowController, ViolationPolicy
from hrassessment.schemas.config import AppConfig, load_config


def test_create_container_with_overrides():
    container = create_container(
        settings={
            "api": {"base_url": "http://assess.test/api", "timeout": 3.5},
            "timer": {"duration_seconds": 90},
            "flow": {"submit_failure_delay": 0.5, "option_resolution": "value"},
            "violations": {"max_violations": 2, "policy": "terminate"},
            "submission": {"retry_attempts": 5},
        }
    )

    settings = container.flow_settings()
    submitter = container.submitter()
    controller = container.controller(7, 8)

    assert settings.duration_seconds == 90
    assert settings.submit_failure_delay == 0.5
    assert settings.complete_notify_delay == 3.0
    assert settings.max_violations == 2
    assert settings.violation_policy is ViolationPolicy.TERMINATE
    assert submitter.resolution == "value"
    assert submitter._retry_attempts == 5
    assert container.submitter() is submitter
    assert isinstance(controller, TestFlowController)
    assert controller.identifiers == (7, 8)


def test_create_container_defaults():
    container = create_container()
    settings = container.flow_settings()

    assert settings.duration_seconds == 600
    assert settings.violation_policy is ViolationPolicy.ANNOTATE
    assert container.submitter().resolution == "identity"


def test_load_config_validation():
    app_config = load_config({"timer": {"duration_seconds": 120}})
    assert isinstance(app_config, AppConfig)
    settings = app_config.to_settings()
    assert settings["timer"]["duration_seconds"] == 120
    assert "token" not in settings["api"]

    with pytest.raises(ValidationError):
        load_config({"timer": {"duration_seconds": 0}})
    with pytest.raises(ValidationError):
        load_config({"scoring": {}})


def test_config_manager_reads_yaml_profiles(tmp_path: Path):
    (tmp_path / "staging.yml").write_text(
        "api:\n  base_url: http://staging/api\nviolations:\n  policy: terminate\n",
        encoding="utf-8",
    )
    (tmp_path / "empty.yaml").write_text("", encoding="utf-8")

    manager, name = ConfigManager.for_file(tmp_path / "staging.yml")
    app_config = manager.load_app_config(name)

    assert name == "staging"
    assert app_config.api.base_url == "http://staging/api"
    assert app_config.violations.policy == "terminate"
    assert manager.load("empty") == {}
    with pytest.raises(FileNotFoundError):
        manager.load("missing")
