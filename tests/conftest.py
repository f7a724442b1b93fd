"""
Pytest configuration and shared fixtures for statecrypt tests.

This module provides reusable fixtures and test utilities used across
the test suite.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest
import yaml

from statecrypt.config.body import Body
from statecrypt.config.config_map import ConfigMap, decode_config_map
from statecrypt.diagnostics import SourceRange
from statecrypt.encryption import reset_singleton


@pytest.fixture(autouse=True)
def clean_singleton():
    """Make sure no test sees a registry installed by another test."""
    reset_singleton()
    yield
    reset_singleton()


@pytest.fixture
def tmp_test_dir(tmp_path: Path) -> Path:
    """
    Provide a temporary directory for test artifacts.

    Automatically cleaned up after test completion.
    """
    return tmp_path


@pytest.fixture
def sample_config_data() -> dict[str, Any]:
    """
    Provide a document declaring every kind of purpose.

    The backend has one fallback level for key rotation.
    """
    return {
        "backend": {
            "required": True,
            "key_provider": {"aws_kms": {"region": "us-east-1", "kms_key_id": "new"}},
            "method": {"aes_gcm": {}},
            "fallback": {
                "key_provider": {"aws_kms": {"region": "us-east-1", "kms_key_id": "old"}},
                "method": {"aes_gcm": {}},
            },
        },
        "statefile": {
            "key_provider": {"pbkdf2": {"passphrase": "correct horse"}},
            "method": {"aes_gcm": {}},
        },
        "planfile": {
            "method": {"aes_gcm": {}},
        },
        "remote_state": {
            "network": {
                "method": {"aes_gcm": {}},
            },
        },
    }


@pytest.fixture
def create_yaml_file(tmp_test_dir: Path):
    """
    Factory fixture for creating temporary YAML files.

    Usage:
        yaml_path = create_yaml_file("test.yaml", {"key": "value"})
    """

    def _create(filename: str, data: dict[str, Any]) -> Path:
        path = tmp_test_dir / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.dump(data, f)
        return path

    return _create


@pytest.fixture
def make_body():
    """
    Factory fixture for Body objects without touching the filesystem.

    Usage:
        body = make_body({"backend": {...}})
    """

    def _make(data: dict[str, Any], filename: str = "test.yaml") -> Body:
        return Body(data, SourceRange(filename))

    return _make


@pytest.fixture
def make_config_map(make_body):
    """
    Factory fixture decoding a document dict into a ConfigMap.

    Fails the test if decoding produced any error.
    """

    def _make(data: dict[str, Any], filename: str = "test.yaml") -> ConfigMap:
        cfg, diags = decode_config_map(make_body(data, filename))
        assert not diags.has_errors(), [str(d) for d in diags]
        return cfg

    return _make
