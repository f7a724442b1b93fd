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

"""Public API return types for statecrypt.

Note:
    Only public API return types belong in this module. Domain types
    (ConfigNode, ConfigMap) stay co-located with their decoding logic.
"""

from __future__ import annotations

from dataclasses import dataclass

from statecrypt.config.config_map import ConfigMap
from statecrypt.diagnostics import Diagnostics


@dataclass(frozen=True)
class ResolveResult:
    """Result from resolving every configuration source.

    Attributes:
        config_map: The merged configuration, or None if nothing was
            configured.
        diagnostics: Everything reported while loading and merging.
        sources: The sources that were consulted, in precedence order
            (lowest first).
        status: "resolved", "empty" (nothing configured) or "invalid"
            (error diagnostics present).
    """

    config_map: ConfigMap | None
    diagnostics: Diagnostics
    sources: tuple[str, ...]
    status: str

    @property
    def purposes(self) -> list[str]:
        if self.config_map is None:
            return []
        return sorted(self.config_map.configs)

