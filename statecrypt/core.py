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

"""Core orchestration for statecrypt.

This module ties the resolver and the registry together for the two ways
the package is driven:

- setup_encryption(): called once by a host tool at startup. Resolves
  every source and installs the result into the process-wide registry.
- resolve_encryption(): used by the CLI and by tooling that only wants to
  inspect the merged configuration without installing it.

Design Principles:

- Diagnostics are returned, never printed; the CLI layer formats them
- Nothing is installed when any source produced an error
- Nothing is installed when no source supplied configuration, so every
  purpose stays pass-through

Example:
    Host tool startup:
        ```python
        from pathlib import Path
        from statecrypt.core import setup_encryption
        from statecrypt.encryption import get_singleton

        diags = setup_encryption(root_cfg, [Path("rotate.yaml")])
        diags.raise_for_errors()

        flow = get_singleton().state_file()
        ```

"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import os
from pathlib import Path

from statecrypt.config.config_map import ConfigMap
from statecrypt.config.loader import ENV_VAR_NAME, load_config_map_file
from statecrypt.config.resolver import resolve_config_map
from statecrypt.diagnostics import Diagnostics
from statecrypt.encryption.flow import FlowBuilder, build_flow
from statecrypt.encryption.registry import setup_singleton
from statecrypt.logging import Logger, get_global_logger
from statecrypt.results import ResolveResult

__all__ = ["setup_encryption", "resolve_encryption"]


def setup_encryption(
    root: ConfigMap | None = None,
    override_paths: Iterable[Path] = (),
    *,
    environ: Mapping[str, str] | None = None,
    env_var: str = ENV_VAR_NAME,
    logger: Logger | None = None,
    flow_builder: FlowBuilder = build_flow,
) -> Diagnostics:
    """Resolve every source and install the result as the process registry.

    Args:
        root: The root module's declaration, if any.
        override_paths: Override documents, lowest precedence first.
        environ: Environment mapping. Defaults to os.environ.
        env_var: Name of the environment variable holding the document.
        logger: Logger for progress output. Defaults to the global logger.
        flow_builder: Builder passed to the installed registry.

    Returns:
        Every diagnostic produced while resolving. The registry is installed
            only when there are no error diagnostics and some configuration
            was found.

    Raises:
        ConfigError: If the process registry was already set up.
    """
    if logger is None:
        logger = get_global_logger()

    cfg, diags = resolve_config_map(
        root, override_paths, environ=environ, env_var=env_var, logger=logger
    )

    if diags.has_errors():
        logger.verbose(
            "REGISTRY",
            f"Not installing encryption configuration: {len(diags.errors())} error(s)",
        )
        return diags
    if cfg is None:
        logger.verbose("REGISTRY", "No encryption configuration; using pass-through")
        return diags

    setup_singleton(cfg, flow_builder=flow_builder, logger=logger)
    return diags


def resolve_encryption(
    root_path: Path | None = None,
    override_paths: Iterable[Path] = (),
    *,
    environ: Mapping[str, str] | None = None,
    env_var: str = ENV_VAR_NAME,
    logger: Logger | None = None,
) -> ResolveResult:
    """Resolve every source from files without installing anything.

    Args:
        root_path: Document holding the root module's declaration, if any.
        override_paths: Override documents, lowest precedence first.
        environ: Environment mapping. Defaults to os.environ.
        env_var: Name of the environment variable holding the document.
        logger: Logger for progress output. Defaults to the global logger.

    Returns:
        The merged configuration together with all diagnostics and the list
            of sources consulted.
    """
    if logger is None:
        logger = get_global_logger()
    if environ is None:
        environ = os.environ

    override_paths = [Path(p) for p in override_paths]
    diags = Diagnostics()
    sources: list[str] = []
    root: ConfigMap | None = None

    logger.step(1, 2, "Loading root module declaration...")
    if root_path is not None:
        root, root_diags = load_config_map_file(Path(root_path))
        diags.extend(root_diags)
        sources.append(str(root_path))

    logger.step(2, 2, "Resolving overrides...")
    sources.extend(str(p) for p in override_paths)
    if environ.get(env_var, "").strip():
        sources.append(f"${env_var}")

    cfg, resolve_diags = resolve_config_map(
        root, override_paths, environ=environ, env_var=env_var, logger=logger
    )
    diags.extend(resolve_diags)

    if diags.has_errors():
        status = "invalid"
    elif cfg is None or len(cfg) == 0:
        status = "empty"
    else:
        status = "resolved"

    return ResolveResult(
        config_map=cfg, diagnostics=diags, sources=tuple(sources), status=status
    )
