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

"""Flow protocol and the default flow builder.

A flow is what the registry hands back for a purpose: the configuration to
encrypt with and the ordered list of configurations to try when decrypting
(primary first, then each fallback level). statecrypt does not perform any
cryptography; key provider and method plugins plug in by supplying their
own FlowBuilder to the registry.

Design Philosophy:
    - Flow is a Protocol class (structural subtyping, not inheritance)
    - A purpose with no configuration gets a PassthroughFlow, never an error
    - Builders receive the already-merged node and must not mutate it

Example:
    Supplying a custom builder:
        ```python
        from statecrypt.encryption import EncryptionRegistry
        from statecrypt.encryption.flow import ConfigFlow, PassthroughFlow

        def my_builder(purpose, node, logger):
            if node is None:
                return PassthroughFlow(purpose)
            return MyKmsFlow(purpose, node)   # implements Flow

        registry = EncryptionRegistry(cfg, flow_builder=my_builder)
        ```

"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from statecrypt.config.node import ConfigNode
from statecrypt.logging import Logger

__all__ = ["Flow", "FlowBuilder", "PassthroughFlow", "ConfigFlow", "build_flow"]


class Flow(Protocol):
    """Protocol for encryption flows returned by the registry."""

    purpose: str

    @property
    def is_passthrough(self) -> bool:
        """True if data passes through unmodified."""
        ...

    @property
    def encrypt_config(self) -> ConfigNode | None:
        """Configuration used to encrypt new data, or None for pass-through."""
        ...

    @property
    def decrypt_configs(self) -> list[ConfigNode]:
        """Configurations to try in order when decrypting existing data."""
        ...


FlowBuilder = Callable[[str, "ConfigNode | None", Logger], Flow]


@dataclass(frozen=True)
class PassthroughFlow:
    """Flow for a purpose with no encryption configuration."""

    purpose: str

    @property
    def is_passthrough(self) -> bool:
        return True

    @property
    def encrypt_config(self) -> ConfigNode | None:
        return None

    @property
    def decrypt_configs(self) -> list[ConfigNode]:
        return []


@dataclass(frozen=True)
class ConfigFlow:
    """Flow built from a resolved ConfigNode.

    Attributes:
        purpose: Purpose key the flow was built for.
        node: The resolved primary node; its fallback chain gives the
            decrypt order.
    """

    purpose: str
    node: ConfigNode

    @property
    def is_passthrough(self) -> bool:
        return False

    @property
    def required(self) -> bool:
        return self.node.required

    @property
    def encrypt_config(self) -> ConfigNode | None:
        return self.node

    @property
    def decrypt_configs(self) -> list[ConfigNode]:
        return list(self.node.chain())


def build_flow(purpose: str, node: ConfigNode | None, logger: Logger) -> Flow:
    """Default FlowBuilder.

    Args:
        purpose: Purpose key being built.
        node: Resolved node, or None for pass-through.
        logger: Logger for progress output.

    Returns:
        PassthroughFlow when node is None, otherwise a ConfigFlow.
    """
    if node is None:
        logger.debug("FLOW", f"{purpose}: pass-through")
        return PassthroughFlow(purpose)

    flow = ConfigFlow(purpose, node)
    if node.method is None:
        logger.warning("FLOW", f"{purpose}: no method declared")
    logger.debug(
        "FLOW",
        f"{purpose}: required={node.required}, "
        f"{len(flow.decrypt_configs)} decrypt attempt(s)",
    )
    return flow
