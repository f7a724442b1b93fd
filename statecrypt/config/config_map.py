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

"""Purpose-keyed encryption configuration decoded from one document.

Purposes:
    - backend: the remote state channel of the current project
    - statefile: the on-disk state file
    - planfile: the plan file
    - remote_state:<name>: a remote state data source, one per label

Document Shape (YAML shown; JSON uses the same structure):

    backend:
      required: true
      key_provider:
        aws_kms:
          region: us-east-1
      method:
        aes_gcm: {}
    statefile:
      method:
        aes_gcm: {}
    remote_state:
      network:
        method:
          aes_gcm: {}

Duplicates:
    A purpose declared twice in one document keeps its first declaration.
    The later one is dropped with a warning diagnostic.

"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from statecrypt.config.body import BlockHeaderSchema, Body, BodySchema
from statecrypt.config.node import ConfigNode, decode_node
from statecrypt.diagnostics import Diagnostics, SourceRange

__all__ = [
    "PURPOSE_BACKEND",
    "PURPOSE_STATEFILE",
    "PURPOSE_PLANFILE",
    "FIXED_PURPOSES",
    "REMOTE_STATE_PREFIX",
    "remote_state_key",
    "ConfigMap",
    "decode_config_map",
]

PURPOSE_BACKEND = "backend"
PURPOSE_STATEFILE = "statefile"
PURPOSE_PLANFILE = "planfile"
FIXED_PURPOSES = (PURPOSE_BACKEND, PURPOSE_STATEFILE, PURPOSE_PLANFILE)

REMOTE_STATE_BLOCK = "remote_state"
REMOTE_STATE_PREFIX = REMOTE_STATE_BLOCK + ":"

MAP_SCHEMA = BodySchema(
    blocks=(
        BlockHeaderSchema(PURPOSE_BACKEND),
        BlockHeaderSchema(PURPOSE_STATEFILE),
        BlockHeaderSchema(PURPOSE_PLANFILE),
        BlockHeaderSchema(REMOTE_STATE_BLOCK, ("name",)),
    ),
)


def remote_state_key(name: str) -> str:
    """Return the purpose key for a remote state data source name."""
    return REMOTE_STATE_PREFIX + name


@dataclass
class ConfigMap:
    """Mapping from purpose key to ConfigNode for one source (or a merge of many).

    Attributes:
        configs: Purpose key -> node.
        decl_range: Range of the document this map was decoded from.
    """

    configs: dict[str, ConfigNode] = field(default_factory=dict)
    decl_range: SourceRange | None = None

    def __len__(self) -> int:
        return len(self.configs)

    def __contains__(self, key: object) -> bool:
        return key in self.configs

    def get(self, key: str) -> ConfigNode | None:
        return self.configs.get(key)

    def merge(self, override: ConfigMap) -> None:
        """Fold override into this map in place (see merge.merge_map)."""
        from statecrypt.config.merge import merge_map

        merge_map(self, override)

    def to_dict(self) -> dict[str, Any]:
        """Render the map back into document form."""
        out: dict[str, Any] = {}
        for key in sorted(self.configs):
            node = self.configs[key]
            if key.startswith(REMOTE_STATE_PREFIX):
                name = key[len(REMOTE_STATE_PREFIX) :]
                out.setdefault(REMOTE_STATE_BLOCK, {})[name] = node.to_dict()
            else:
                out[key] = node.to_dict()
        return out


def decode_config_map(
    body: Body, decl_range: SourceRange | None = None
) -> tuple[ConfigMap, Diagnostics]:
    """Decode a document body into a ConfigMap.

    Args:
        body: Top-level body of the document.
        decl_range: Range to record on the map. Defaults to body.source.

    Returns:
        A tuple (config_map, diagnostics). Purposes whose blocks failed to
            decode are left out of the map; check diagnostics.has_errors()
            before using it.
    """
    content, diags = body.content(MAP_SCHEMA)
    cfg = ConfigMap(decl_range=decl_range or body.source)
    first_seen: dict[str, SourceRange] = {}

    for block in content.blocks:
        if block.type == REMOTE_STATE_BLOCK:
            key = remote_state_key(block.labels[0])
        else:
            key = block.type

        if key in first_seen:
            diags.warning(
                "Duplicate encryption configuration",
                f'Configuration for "{key}" was already declared at '
                f"{first_seen[key]}; this declaration is ignored.",
                block.def_range,
            )
            continue
        first_seen[key] = block.def_range

        node, node_diags = decode_node(block.body, block.def_range)
        diags.extend(node_diags)
        if node is not None:
            cfg.configs[key] = node

    return cfg, diags
