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

"""Precedence merging of config nodes and config maps.

Both functions fold a higher-precedence operand (override) into a
lower-precedence accumulator (base), mutating base in place. Merging means
"override wins on conflict, union on absence".

Node Rules:
    - required: base.required OR override.required (only ever escalates)
    - key_provider / method:
        - override has none -> keep base's
        - base has none -> adopt override's
        - same plugin type -> bodies merged, override's attributes win
        - different plugin type -> override's block replaces base's
    - fallback:
        - override has none -> base's fallback untouched
        - base has none -> adopt override's fallback wholesale
        - both present -> merge base.fallback with override ITSELF

The last fallback rule folds the whole override node into every level of
base's fallback chain, not just override's own fallback. It is kept this
way for compatibility with existing configurations.

Guards:
    Adopting a fallback that already contains base would make the chain
    cyclic, and chains may not exceed MAX_FALLBACK_DEPTH. Both raise
    ConfigError instead of building an unusable tree.

"""

from __future__ import annotations

from typing import TYPE_CHECKING

from statecrypt.config.node import MAX_FALLBACK_DEPTH, ConfigNode, TypedBlock
from statecrypt.exceptions import ConfigError

if TYPE_CHECKING:
    from statecrypt.config.config_map import ConfigMap

__all__ = ["merge_typed_block", "merge_node", "merge_map"]


def merge_typed_block(
    base: TypedBlock | None, override: TypedBlock | None
) -> TypedBlock | None:
    """Combine two key_provider (or method) declarations.

    Returns a new TypedBlock when both are present; neither input is
    modified.
    """
    if override is None:
        return base
    if base is None:
        return override
    if base.type != override.type:
        # Attributes of different plugin types are never mixed
        return override
    return TypedBlock(base.type, base.body.merge(override.body), override.decl_range)


def merge_node(base: ConfigNode, override: ConfigNode, _level: int = 0) -> None:
    """Fold override into base in place.

    Args:
        base: Lower-precedence node; modified.
        override: Higher-precedence node; its fallback may be adopted by base
            and must not be reused by the caller.

    Raises:
        ConfigError: If the merge would create a cyclic or too-deep fallback
            chain.
    """
    base.required = base.required or override.required
    base.key_provider = merge_typed_block(base.key_provider, override.key_provider)
    base.method = merge_typed_block(base.method, override.method)

    if override.fallback is None:
        return

    if base.fallback is None:
        adopted = list(override.fallback.chain())
        if any(node is base for node in adopted):
            raise ConfigError(
                f"merging {override.decl_range} into {base.decl_range} "
                "would make the fallback chain cyclic"
            )
        if _level + len(adopted) > MAX_FALLBACK_DEPTH:
            raise ConfigError(
                f"merging {override.decl_range} into {base.decl_range} would "
                f"exceed {MAX_FALLBACK_DEPTH} fallback levels"
            )
        base.fallback = override.fallback
        return

    if _level + 1 > MAX_FALLBACK_DEPTH:
        raise ConfigError(
            f"fallback chain at {base.decl_range} exceeds "
            f"{MAX_FALLBACK_DEPTH} levels"
        )
    merge_node(base.fallback, override, _level + 1)


def merge_map(base: ConfigMap, override: ConfigMap) -> None:
    """Fold every purpose of override into base in place.

    Purposes present in both are merged with merge_node; purposes only in
    override are inserted as-is (override is not reused afterwards).

    Raises:
        ConfigError: Propagated from merge_node.
    """
    for key, node in override.configs.items():
        existing = base.configs.get(key)
        if existing is None:
            base.configs[key] = node
        else:
            merge_node(existing, node)
