# Copyright 2025 Roger Cibrian
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Registry of resolved encryption configuration, looked up by purpose.

EncryptionRegistry holds the final ConfigMap and hands out flows for each
purpose. It is built once and read many times, typically from several
worker threads doing state and plan I/O at the same time.

Lookup Rules:
    - No configuration at all (None or an empty map): every purpose is
      pass-through. Encryption is opt-in.
    - Some configuration, but a fixed purpose (backend, statefile,
      planfile) is missing: MissingEncryptionConfigError.
    - Remote state data sources are never an error. A caller-supplied
      default node is used as the merge base and the data source's own
      declaration, if any, is merged on top of it.

Concurrency:
    A single lock guards every lookup together with flow construction, so
    flows are built one at a time across all purposes. Flows for the
    fixed purposes and for data sources looked up without a default are
    memoized, so each is built at most once per registry.

Process-wide Instance:
    Parts of a host tool that cannot have the registry passed to them use
    the singleton helpers. setup_singleton() may be called once per
    process; reset_singleton() exists for test harnesses.

Example:
    Explicit construction:
        ```python
        from statecrypt.encryption import EncryptionRegistry

        registry = EncryptionRegistry(cfg)
        flow = registry.state_file()
        for node in flow.decrypt_configs:
            ...
        ```

    Process-wide instance:
        ```python
        from statecrypt.encryption import get_singleton

        flow = get_singleton().plan_file()
        ```

"""

from __future__ import annotations

from copy import deepcopy
import threading

from statecrypt.config.config_map import (
    PURPOSE_BACKEND,
    PURPOSE_PLANFILE,
    PURPOSE_STATEFILE,
    ConfigMap,
    remote_state_key,
)
from statecrypt.config.merge import merge_node
from statecrypt.config.node import ConfigNode
from statecrypt.encryption.flow import Flow, FlowBuilder, build_flow
from statecrypt.exceptions import ConfigError, MissingEncryptionConfigError
from statecrypt.logging import Logger, get_global_logger

__all__ = [
    "EncryptionRegistry",
    "setup_singleton",
    "get_singleton",
    "reset_singleton",
]


class EncryptionRegistry:
    """Purpose-scoped access to a resolved ConfigMap.

    Args:
        config_map: The resolved configuration, or None if nothing was
            configured anywhere.
        flow_builder: Callable that turns a node into a Flow.
        logger: Logger for progress output. Defaults to the global logger.
    """

    def __init__(
        self,
        config_map: ConfigMap | None = None,
        *,
        flow_builder: FlowBuilder = build_flow,
        logger: Logger | None = None,
    ) -> None:
        self._configs: dict[str, ConfigNode] = (
            dict(config_map.configs) if config_map is not None else {}
        )
        self._flow_builder = flow_builder
        self._logger = logger if logger is not None else get_global_logger()
        self._lock = threading.Lock()
        self._flows: dict[str, Flow] = {}

    @property
    def configured(self) -> bool:
        """True if any purpose has configuration."""
        return bool(self._configs)

    def purposes(self) -> list[str]:
        return sorted(self._configs)

    def remote_state(self) -> Flow:
        """Flow for the remote state of the current project (backend)."""
        return self._fixed(PURPOSE_BACKEND)

    def state_file(self) -> Flow:
        """Flow for the on-disk state file."""
        return self._fixed(PURPOSE_STATEFILE)

    def plan_file(self) -> Flow:
        """Flow for the plan file."""
        return self._fixed(PURPOSE_PLANFILE)

    def remote_state_datasource(
        self, name: str, default: ConfigNode | None = None
    ) -> Flow:
        """Flow for a remote state data source.

        Args:
            name: Data source name (the remote_state block label).
            default: Configuration to use as the merge base. The data
                source's own declaration, if any, is merged on top. Not
                modified.

        Returns:
            The flow. Pass-through if there is neither a default nor a
                declaration for this data source.

        Raises:
            ConfigError: If merging the declaration onto the default
                trips a fallback guard.
        """
        key = remote_state_key(name)
        with self._lock:
            node = self._configs.get(key)
            if default is None:
                return self._memoized(key, node)

            merged = deepcopy(default)
            if node is not None:
                merge_node(merged, deepcopy(node))
            self._logger.verbose("REGISTRY", f"{key}: merged onto caller default")
            return self._flow_builder(key, merged, self._logger)

    def _fixed(self, key: str) -> Flow:
        with self._lock:
            if not self._configs:
                return self._memoized(key, None)
            node = self._configs.get(key)
            if node is None:
                raise MissingEncryptionConfigError(key)
            return self._memoized(key, node)

    def _memoized(self, key: str, node: ConfigNode | None) -> Flow:
        # Caller must hold self._lock
        flow = self._flows.get(key)
        if flow is None:
            self._logger.verbose("REGISTRY", f"Building flow for {key}")
            flow = self._flow_builder(key, node, self._logger)
            self._flows[key] = flow
        return flow


# -------------------------------
# Process-wide instance
# -------------------------------

_singleton: EncryptionRegistry | None = None
_passthrough: EncryptionRegistry | None = None
_singleton_lock = threading.Lock()


def setup_singleton(
    config_map: ConfigMap | None,
    *,
    flow_builder: FlowBuilder = build_flow,
    logger: Logger | None = None,
) -> EncryptionRegistry:
    """Install the process-wide registry.

    Args:
        config_map: The resolved configuration.
        flow_builder: Callable that turns a node into a Flow.
        logger: Logger for progress output.

    Returns:
        The installed registry.

    Raises:
        ConfigError: If a registry was already installed.
    """
    global _singleton
    with _singleton_lock:
        if _singleton is not None:
            raise ConfigError("encryption registry is already set up")
        _singleton = EncryptionRegistry(
            config_map, flow_builder=flow_builder, logger=logger
        )
        _singleton._logger.verbose(
            "REGISTRY",
            f"Installed encryption configuration for "
            f"{len(_singleton.purposes())} purpose(s)",
        )
        return _singleton


def get_singleton() -> EncryptionRegistry:
    """Return the process-wide registry.

    Returns:
        The installed registry, or a shared pass-through registry if setup
            never installed one (nothing was configured).
    """
    global _passthrough
    with _singleton_lock:
        if _singleton is not None:
            return _singleton
        if _passthrough is None:
            _passthrough = EncryptionRegistry(None)
        return _passthrough


def reset_singleton() -> None:
    """Forget the process-wide registry. Intended for test harnesses."""
    global _singleton, _passthrough
    with _singleton_lock:
        _singleton = None
        _passthrough = None
