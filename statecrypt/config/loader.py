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

"""Loading encryption configuration documents from files and the environment.

Documents are parsed into a Body and then decoded into a ConfigMap. Every
problem along the way (missing file, parse error, schema violation) is
returned as a diagnostic attributed to the source, never raised, so the
resolver can keep going with the next source.

Syntax Detection:
    Text whose first non-whitespace character is "{" is parsed as JSON.
    Anything else is parsed as YAML, the native syntax. Files that start
    with "{" but are not valid JSON are retried as a YAML flow mapping;
    the environment document gets no such retry.

Repeated Keys:
    A key written twice in one mapping is never collapsed to its last
    value. Both parsers collect the values into a RepeatedKey, which the
    decoder turns into duplicate-block or redefined-attribute diagnostics.

Environment Channel:
    The environment document is read from TF_STATE_ENCRYPTION by default.
    An unset or blank variable means there is no environment override.

Example:
    Load an override file:
        ```python
        from pathlib import Path
        from statecrypt.config.loader import load_config_map_file

        cfg, diags = load_config_map_file(Path("encryption.yaml"))
        if diags.has_errors():
            for d in diags.errors():
                print(d)
        ```

"""

from __future__ import annotations

import json
import os
from collections.abc import Hashable, Mapping
from pathlib import Path
from typing import Any

import yaml
from yaml.constructor import ConstructorError

from statecrypt.config.body import Body, RepeatedKey
from statecrypt.config.config_map import ConfigMap, decode_config_map
from statecrypt.diagnostics import Diagnostics, SourceRange

__all__ = [
    "ENV_VAR_NAME",
    "parse_document",
    "load_document_file",
    "load_env_document",
    "load_config_map_file",
    "load_config_map_env",
]

ENV_VAR_NAME = "TF_STATE_ENCRYPTION"

_MERGE_TAG = "tag:yaml.org,2002:merge"

# -------------------------------
# Parsing
# -------------------------------


def _looks_like_json(text: str) -> bool:
    return text.lstrip().startswith("{")


class _RepeatedKeyLoader(yaml.SafeLoader):
    """SafeLoader that keeps every value of a repeated mapping key."""

    def construct_mapping(self, node, deep=False):
        if not isinstance(node, yaml.MappingNode):
            raise ConstructorError(
                None,
                None,
                f"expected a mapping node, but found {node.id}",
                node.start_mark,
            )
        own_pairs = sum(1 for key_node, _ in node.value if key_node.tag != _MERGE_TAG)
        self.flatten_mapping(node)
        # Pairs pulled in through "<<" come first and may be overridden
        merged_pairs = len(node.value) - own_pairs

        mapping: dict[Any, Any] = {}
        own_keys: set[Any] = set()
        for idx, (key_node, value_node) in enumerate(node.value):
            key = self.construct_object(key_node, deep=deep)
            if not isinstance(key, Hashable):
                raise ConstructorError(
                    "while constructing a mapping",
                    node.start_mark,
                    "found unhashable key",
                    key_node.start_mark,
                )
            value = self.construct_object(value_node, deep=deep)
            if idx < merged_pairs:
                mapping[key] = value
            elif key in own_keys:
                RepeatedKey.store(mapping, key, value)
            else:
                own_keys.add(key)
                mapping[key] = value
        return mapping


def _json_object(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key, value in pairs:
        RepeatedKey.store(mapping, key, value)
    return mapping


def _load_yaml(text: str) -> Any:
    return yaml.load(text, Loader=_RepeatedKeyLoader)


def _json_syntax_error(
    diags: Diagnostics, err: json.JSONDecodeError, source: SourceRange
) -> None:
    diags.error(
        "Invalid JSON syntax",
        f"line {err.lineno}, column {err.colno}: {err.msg}",
        source,
    )


def parse_document(
    text: str, filename: str, yaml_fallback: bool = False
) -> tuple[Body | None, Diagnostics]:
    """Parse document text into a Body.

    Repeated keys are kept as RepeatedKey values so the decoder can report
    them, rather than letting the last occurrence win.

    Args:
        text: Raw document text (JSON or YAML).
        filename: Name used in diagnostics and recorded on the body.
        yaml_fallback: If True, text that looks like JSON but fails to parse
            as JSON is retried as YAML (a YAML flow mapping also starts
            with "{"). The JSON error is reported if YAML fails too.

    Returns:
        A tuple (body, diagnostics). body is None if the text could not be
            parsed, was empty, or did not contain a mapping at the top level.
    """
    diags = Diagnostics()
    source = SourceRange(filename)

    if _looks_like_json(text):
        try:
            data = json.loads(text, object_pairs_hook=_json_object)
        except json.JSONDecodeError as err:
            if not yaml_fallback:
                _json_syntax_error(diags, err, source)
                return None, diags
            try:
                data = _load_yaml(text)
            except yaml.YAMLError:
                _json_syntax_error(diags, err, source)
                return None, diags
    else:
        try:
            data = _load_yaml(text)
        except yaml.YAMLError as err:
            diags.error("Invalid YAML syntax", str(err), source)
            return None, diags

    if data is None:
        diags.error("Empty encryption configuration", "The document is empty.", source)
        return None, diags
    if not isinstance(data, Mapping):
        diags.error(
            "Invalid encryption configuration",
            f"The top level must be a mapping, got {type(data).__name__}.",
            source,
        )
        return None, diags

    return Body(data, source), diags


def load_document_file(path: Path) -> tuple[Body | None, Diagnostics]:
    """Read and parse one configuration file.

    Args:
        path: Path to a YAML or JSON document.

    Returns:
        A tuple (body, diagnostics); body is None on any error.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        diags = Diagnostics()
        diags.error("Encryption configuration file not found", "", SourceRange(str(path)))
        return None, diags
    except OSError as err:
        diags = Diagnostics()
        diags.error(
            "Failed to read encryption configuration file",
            str(err),
            SourceRange(str(path)),
        )
        return None, diags
    return parse_document(text, str(path), yaml_fallback=True)


def load_env_document(
    environ: Mapping[str, str] | None = None, var: str = ENV_VAR_NAME
) -> tuple[Body | None, Diagnostics]:
    """Read and parse the environment-supplied document.

    Args:
        environ: Environment mapping to read from. Defaults to os.environ.
        var: Variable name holding the document.

    Returns:
        A tuple (body, diagnostics). (None, []) if the variable is unset or
            blank.
    """
    if environ is None:
        environ = os.environ
    text = environ.get(var, "")
    if not text.strip():
        return None, Diagnostics()
    return parse_document(text, f"${var}")


# -------------------------------
# Decoding
# -------------------------------


def _decode(body: Body | None, diags: Diagnostics) -> tuple[ConfigMap | None, Diagnostics]:
    if body is None:
        return None, diags
    cfg, cfg_diags = decode_config_map(body)
    diags.extend(cfg_diags)
    if cfg_diags.has_errors():
        return None, diags
    return cfg, diags


def load_config_map_file(path: Path) -> tuple[ConfigMap | None, Diagnostics]:
    """Load one override file straight into a ConfigMap.

    Returns:
        A tuple (config_map, diagnostics). config_map is None if the file
            could not be parsed or decoding produced errors; warnings alone
            still yield a map.
    """
    return _decode(*load_document_file(path))


def load_config_map_env(
    environ: Mapping[str, str] | None = None, var: str = ENV_VAR_NAME
) -> tuple[ConfigMap | None, Diagnostics]:
    """Load the environment document straight into a ConfigMap.

    Returns:
        A tuple (config_map, diagnostics). (None, []) when the variable is
            unset; otherwise as load_config_map_file.
    """
    return _decode(*load_env_document(environ, var))
