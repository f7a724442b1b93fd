"""
Tests for statecrypt.encryption.registry module.

Tests purpose lookups including:
- Pass-through when nothing is configured
- Missing fixed purpose is an error
- Remote state data source default merging
- Memoization and custom flow builders
- Thread-safe lookups
- Singleton lifecycle
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import threading

import pytest

from statecrypt.config.body import Body
from statecrypt.config.config_map import ConfigMap
from statecrypt.config.node import ConfigNode, TypedBlock
from statecrypt.diagnostics import SourceRange
from statecrypt.encryption import (
    ConfigFlow,
    EncryptionRegistry,
    PassthroughFlow,
    get_singleton,
    reset_singleton,
    setup_singleton,
)
from statecrypt.exceptions import ConfigError, MissingEncryptionConfigError


def _method(type_: str = "aes_gcm") -> TypedBlock:
    rng = SourceRange("test.yaml", "method")
    return TypedBlock(type_, Body({}, rng), rng)


class TestPassThrough:
    """Tests for registries without configuration."""

    def test_no_config_map(self):
        registry = EncryptionRegistry(None)

        assert registry.configured is False
        for flow in (registry.remote_state(), registry.state_file(), registry.plan_file()):
            assert flow.is_passthrough
            assert flow.encrypt_config is None
            assert flow.decrypt_configs == []

    def test_empty_config_map(self):
        """Test that an empty map behaves like no configuration at all."""
        flow = EncryptionRegistry(ConfigMap()).state_file()

        assert isinstance(flow, PassthroughFlow)
        assert flow.purpose == "statefile"

    def test_undeclared_datasource_is_passthrough(self, make_config_map):
        registry = EncryptionRegistry(make_config_map({"backend": {}}))

        flow = registry.remote_state_datasource("unknown")

        assert flow.is_passthrough
        assert flow.purpose == "remote_state:unknown"


class TestMissingPurpose:
    """Tests for fixed purposes missing from a non-empty map."""

    def test_missing_backend_is_error(self, make_config_map):
        registry = EncryptionRegistry(make_config_map({"statefile": {}}))

        with pytest.raises(MissingEncryptionConfigError) as exc_info:
            registry.remote_state()

        assert exc_info.value.purpose == "backend"
        assert '"backend"' in str(exc_info.value)

    def test_missing_planfile_is_config_error(self, make_config_map):
        registry = EncryptionRegistry(make_config_map({"statefile": {}}))

        with pytest.raises(ConfigError, match="planfile"):
            registry.plan_file()

    def test_declared_purpose_found(self, make_config_map, sample_config_data):
        registry = EncryptionRegistry(make_config_map(sample_config_data))

        flow = registry.remote_state()

        assert isinstance(flow, ConfigFlow)
        assert flow.required is True
        assert len(flow.decrypt_configs) == 2
        assert flow.decrypt_configs[0] is flow.encrypt_config
        kms_ids = [n.key_provider.body.to_dict()["kms_key_id"] for n in flow.decrypt_configs]
        assert kms_ids == ["new", "old"]


class TestRemoteStateDatasource:
    """Tests for remote_state_datasource lookups."""

    def test_default_merged_under_declaration(self, make_config_map):
        """Test default {required: true} + declared {required: false, method: M}."""
        registry = EncryptionRegistry(
            make_config_map({"remote_state": {"net": {"method": {"aes_gcm": {}}}}})
        )
        default = ConfigNode(required=True)

        flow = registry.remote_state_datasource("net", default)

        assert flow.encrypt_config.required is True
        assert flow.encrypt_config.method.type == "aes_gcm"
        # The caller's default is left untouched
        assert default.method is None

    def test_declaration_wins_over_default(self, make_config_map):
        registry = EncryptionRegistry(
            make_config_map({"remote_state": {"net": {"method": {"chacha": {}}}}})
        )
        default = ConfigNode(method=_method("aes_gcm"))

        flow = registry.remote_state_datasource("net", default)

        assert flow.encrypt_config.method.type == "chacha"

    def test_default_only(self):
        registry = EncryptionRegistry(None)
        default = ConfigNode(required=True, method=_method())

        flow = registry.remote_state_datasource("net", default)

        assert not flow.is_passthrough
        assert flow.encrypt_config == default
        assert flow.encrypt_config is not default

    def test_registry_node_not_mutated(self, make_config_map):
        cfg = make_config_map({"remote_state": {"net": {"required": False}}})
        registry = EncryptionRegistry(cfg)

        registry.remote_state_datasource("net", ConfigNode(required=True))

        assert cfg.configs["remote_state:net"].required is False


class TestFlowBuilder:
    """Tests for flow construction and memoization."""

    def test_flows_memoized(self, make_config_map):
        calls = []

        def builder(purpose, node, logger):
            calls.append(purpose)
            return PassthroughFlow(purpose)

        registry = EncryptionRegistry(
            make_config_map({"statefile": {}}), flow_builder=builder
        )

        first = registry.state_file()
        second = registry.state_file()

        assert first is second
        assert calls == ["statefile"]

    def test_datasource_with_default_not_memoized(self):
        calls = []

        def builder(purpose, node, logger):
            calls.append(purpose)
            return ConfigFlow(purpose, node)

        registry = EncryptionRegistry(None, flow_builder=builder)
        registry.remote_state_datasource("a", ConfigNode())
        registry.remote_state_datasource("a", ConfigNode(required=True))

        assert calls == ["remote_state:a", "remote_state:a"]

    def test_builder_receives_none_for_passthrough(self):
        seen = []

        def builder(purpose, node, logger):
            seen.append(node)
            return PassthroughFlow(purpose)

        EncryptionRegistry(None, flow_builder=builder).plan_file()

        assert seen == [None]


class TestConcurrency:
    """Tests for thread-safe lookups."""

    def test_builder_never_runs_concurrently(self, make_config_map, sample_config_data):
        active = 0
        max_active = 0
        guard = threading.Lock()

        def builder(purpose, node, logger):
            nonlocal active, max_active
            with guard:
                active += 1
                max_active = max(max_active, active)
            threading.Event().wait(0.001)
            with guard:
                active -= 1
            return ConfigFlow(purpose, node) if node else PassthroughFlow(purpose)

        registry = EncryptionRegistry(
            make_config_map(sample_config_data), flow_builder=builder
        )

        def lookup(i: int):
            if i % 3 == 0:
                return registry.state_file()
            return registry.remote_state_datasource(f"ds{i}", ConfigNode())

        with ThreadPoolExecutor(max_workers=8) as pool:
            flows = list(pool.map(lookup, range(60)))

        assert len(flows) == 60
        assert max_active == 1
        state_flows = {id(f) for i, f in enumerate(flows) if i % 3 == 0}
        assert len(state_flows) == 1


class TestSingleton:
    """Tests for the process-wide registry."""

    def test_unset_singleton_is_passthrough(self):
        assert get_singleton().state_file().is_passthrough

    def test_unset_singleton_is_shared(self):
        """Test that pass-through lookups reuse one registry and its flows."""
        first = get_singleton()

        assert get_singleton() is first
        assert get_singleton().plan_file() is first.plan_file()

    def test_setup_after_passthrough_lookup(self, make_config_map):
        passthrough = get_singleton()

        installed = setup_singleton(make_config_map({"planfile": {}}))

        assert installed is not passthrough
        assert get_singleton() is installed

    def test_setup_and_get(self, make_config_map):
        installed = setup_singleton(make_config_map({"planfile": {"required": True}}))

        assert get_singleton() is installed
        assert get_singleton().plan_file().encrypt_config.required is True

    def test_second_setup_rejected(self, make_config_map):
        setup_singleton(make_config_map({"planfile": {}}))

        with pytest.raises(ConfigError, match="already"):
            setup_singleton(make_config_map({"statefile": {}}))

    def test_reset(self, make_config_map):
        setup_singleton(make_config_map({"planfile": {}}))

        reset_singleton()

        assert get_singleton().configured is False
