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

"""Multi-source resolution of the effective encryption configuration.

Configuration Layers:
    1. **Root module declaration** (optional, lowest precedence)
       - The project's own default encryption configuration

    2. **Override documents** (zero or more, in the order given)
       - Typically passed with repeated --encryption-config flags
       - Each is merged on top of the accumulator, so later files win
         ties against earlier ones

    3. **Environment document** (optional, highest precedence)
       - Read from TF_STATE_ENCRYPTION (JSON or YAML)

Merge Behavior:
    Layers are folded with ConfigMap.merge (see statecrypt.config.merge).
    The first layer present becomes the accumulator as-is. If no layer is
    present at all the result is None, meaning every purpose is
    pass-through.

Error Handling:
    Diagnostics from every source are accumulated and returned together.
    A source that fails to load or decode is skipped and the following
    sources are still processed. A merge that trips a fallback guard is
    reported as an error diagnostic and leaves the accumulator as it was.

"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from copy import deepcopy
from pathlib import Path

from statecrypt.config.config_map import ConfigMap
from statecrypt.config.loader import (
    ENV_VAR_NAME,
    load_config_map_env,
    load_config_map_file,
)
from statecrypt.diagnostics import Diagnostics, SourceRange
from statecrypt.exceptions import ConfigError
from statecrypt.logging import Logger, get_global_logger

__all__ = ["resolve_config_map"]


def _fold(
    acc: ConfigMap | None,
    layer: ConfigMap,
    source: SourceRange,
    diags: Diagnostics,
    logger: Logger,
) -> ConfigMap | None:
    if acc is None:
        logger.verbose("MERGE", f"Using {source} as base ({len(layer)} purpose(s))")
        return layer

    # Merge into a copy so a failed merge leaves the accumulator intact
    candidate = deepcopy(acc)
    try:
        candidate.merge(layer)
    except ConfigError as err:
        diags.error("Failed to merge encryption configuration", str(err), source)
        return acc

    logger.verbose("MERGE", f"Merged {source} ({len(layer)} purpose(s))")
    for key in sorted(layer.configs):
        logger.debug("MERGE", f"  {key} overridden by {source}")
    return candidate


def resolve_config_map(
    root: ConfigMap | None = None,
    override_paths: Iterable[Path] = (),
    *,
    environ: Mapping[str, str] | None = None,
    env_var: str = ENV_VAR_NAME,
    logger: Logger | None = None,
) -> tuple[ConfigMap | None, Diagnostics]:
    """Resolve the effective ConfigMap from every configuration source.

    Args:
        root: The root module's declaration, if any. Used as the initial
            accumulator; later layers are merged into copies of it.
        override_paths: Override documents, lowest precedence first.
        environ: Environment mapping. Defaults to os.environ.
        env_var: Name of the environment variable holding the document.
        logger: Logger for progress output. Defaults to the global logger.

    Returns:
        A tuple (config_map, diagnostics). config_map is None if no source
            supplied any configuration. Check diagnostics.has_errors()
            before installing the result.

    Example:
        Resolve two overrides with no root declaration:
            ```python
            cfg, diags = resolve_config_map(
                None, [Path("base.yaml"), Path("rotate.yaml")]
            )
            ```
    """
    if logger is None:
        logger = get_global_logger()

    diags = Diagnostics()
    acc = root
    if acc is not None:
        logger.verbose("CONFIG", f"Root module declares {len(acc)} purpose(s)")

    for path in override_paths:
        path = Path(path)
        logger.verbose("CONFIG", f"Loading override: {path}")
        layer, layer_diags = load_config_map_file(path)
        diags.extend(layer_diags)
        if layer is not None:
            acc = _fold(acc, layer, SourceRange(str(path)), diags, logger)

    env_layer, env_diags = load_config_map_env(environ, env_var)
    diags.extend(env_diags)
    if env_layer is not None:
        logger.verbose("CONFIG", f"Loaded environment override from ${env_var}")
        acc = _fold(acc, env_layer, SourceRange(f"${env_var}"), diags, logger)

    for warning in diags.warnings():
        logger.warning("CONFIG", str(warning))

    if acc is None:
        logger.verbose("CONFIG", "No encryption configuration supplied")
    return acc, diags
