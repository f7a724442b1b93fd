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

"""Encryption configuration validation module.

Checks a single configuration document without merging it with anything
or installing it. Useful for quick feedback while editing an override
file and as a CI pre-check.

Validation Checks:

- File exists and is valid YAML or JSON
- Top level is a mapping of known purpose blocks
- Each purpose has at most one key_provider, method and fallback
- required is a bool
- Fallback chains are within the depth limit
- Duplicate purposes (warning)
- Purposes or fallback levels without a method (warning)

Example:
    Validate a file and handle results:
        ```python
        from pathlib import Path
        from statecrypt.validation import validate_encryption_config

        result = validate_encryption_config(Path("encryption.yaml"))
        if result["status"] == "valid":
            print(f"Declares: {', '.join(result['purposes'])}")
        else:
            for error in result["errors"]:
                print(f"Error: {error}")
        ```

"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from statecrypt.config.config_map import decode_config_map
from statecrypt.config.loader import load_document_file

__all__ = ["validate_encryption_config"]


def validate_encryption_config(config_path: Path, verbose: bool = False) -> dict[str, Any]:
    """Validate one encryption configuration document.

    Args:
        config_path: Path to the YAML or JSON document.
        verbose: If True, print validation progress.

    Returns:
        A dict (status, errors, warnings, purposes, config_path), where
            status is "valid" or "invalid", errors and warnings are lists of
            messages, purposes is the sorted list of purpose keys that
            decoded successfully, and config_path is the string path.
    """
    errors: list[str] = []
    warnings: list[str] = []
    purposes: list[str] = []

    if verbose:
        print(f"Validating encryption configuration: {config_path}")

    body, diags = load_document_file(config_path)
    if body is not None:
        if verbose:
            print("  [OK] Document syntax is valid")
        cfg, cfg_diags = decode_config_map(body)
        diags.extend(cfg_diags)
        purposes = sorted(cfg.configs)

        for key in purposes:
            for level, node in enumerate(cfg.configs[key].chain()):
                if node.method is None:
                    where = key if level == 0 else f"{key} (fallback level {level})"
                    warnings.append(f"{where}: no method declared")
            if verbose:
                print(f"  [OK] {key}")

    errors.extend(str(d) for d in diags.errors())
    warnings = [str(d) for d in diags.warnings()] + warnings

    return {
        "status": "invalid" if errors else "valid",
        "errors": errors,
        "warnings": warnings,
        "purposes": purposes,
        "config_path": str(config_path),
    }
