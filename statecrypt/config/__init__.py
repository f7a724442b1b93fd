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

"""Encryption configuration loading, decoding and merging for statecrypt.

This package turns YAML/JSON documents into per-purpose configuration and
combines several of them with a layered approach:

  - Root module declaration (lowest precedence)
  - Override documents, in the order given
  - Environment document from TF_STATE_ENCRYPTION (highest precedence)

Public API:

- resolve_config_map: Fold every source into one ConfigMap
- decode_config_map: Decode one document body into a ConfigMap
- load_config_map_file: Load and decode one file
- ConfigMap, ConfigNode, TypedBlock: The decoded configuration model

Example:
    Basic usage:

        from pathlib import Path
        from statecrypt.config import resolve_config_map

        cfg, diags = resolve_config_map(None, [Path("encryption.yaml")])
        if not diags.has_errors() and cfg is not None:
            print(sorted(cfg.configs))  # ['backend', 'statefile']

"""

from .body import Body
from .config_map import (
    FIXED_PURPOSES,
    PURPOSE_BACKEND,
    PURPOSE_PLANFILE,
    PURPOSE_STATEFILE,
    ConfigMap,
    decode_config_map,
    remote_state_key,
)
from .loader import ENV_VAR_NAME, load_config_map_env, load_config_map_file
from .merge import merge_map, merge_node
from .node import MAX_FALLBACK_DEPTH, ConfigNode, TypedBlock, decode_node
from .resolver import resolve_config_map

__all__ = [
    "Body",
    "ConfigMap",
    "ConfigNode",
    "TypedBlock",
    "FIXED_PURPOSES",
    "PURPOSE_BACKEND",
    "PURPOSE_STATEFILE",
    "PURPOSE_PLANFILE",
    "ENV_VAR_NAME",
    "MAX_FALLBACK_DEPTH",
    "decode_config_map",
    "decode_node",
    "load_config_map_env",
    "load_config_map_file",
    "merge_map",
    "merge_node",
    "remote_state_key",
    "resolve_config_map",
]
