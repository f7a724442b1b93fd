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

"""Command-line interface for statecrypt.

Commands:

    validate: Validate one encryption configuration document
    resolve: Merge root, override and environment configuration and print it

Example:
    Validate an override file:
        ```bash
        $ statecrypt validate encryption.yaml
        ```

    Show the effective configuration during key rotation:
        ```bash
        $ statecrypt resolve --root main.yaml \\
            --encryption-config base.yaml --encryption-config rotate.yaml
        ```

    Enable debug output:
        ```bash
        $ statecrypt resolve --encryption-config base.yaml --debug
        ```

Exit Codes:

- 0: Success
- 1: Error (invalid configuration or failed merge)

Note:
    Verbose mode shows full tracebacks on unexpected statecrypt errors.
    Debug mode implies verbose mode and shows per-purpose merge details.

"""

from __future__ import annotations

import argparse
from importlib.metadata import version
from pathlib import Path
import sys

import yaml

from statecrypt.config.loader import ENV_VAR_NAME
from statecrypt.core import resolve_encryption
from statecrypt.exceptions import StateCryptError
from statecrypt.logging import get_logger, set_global_logger
from statecrypt.validation import validate_encryption_config


def cmd_validate(args: argparse.Namespace) -> int:
    """Handler for 'statecrypt validate' command.

    Args:
        args: Parsed command-line arguments containing the config path and
            verbose flag.

    Returns:
        Exit code (0 for a valid document, 1 for invalid).
    """
    logger = get_logger(verbose=args.verbose, debug=False)
    set_global_logger(logger)

    config_path = Path(args.config).resolve()

    print(f"Validating encryption configuration: {config_path}")
    print()

    result = validate_encryption_config(config_path, verbose=args.verbose)

    print("=" * 70)
    print("VALIDATION RESULTS")
    print("=" * 70)
    print(f"Config:      {result['config_path']}")
    print(f"Status:      {result['status'].upper()}")
    print(f"Purposes:    {', '.join(result['purposes']) or '(none)'}")
    print()

    if result["warnings"]:
        print(f"Warnings ({len(result['warnings'])}):")
        for warning in result["warnings"]:
            print(f"  [WARNING] {warning}")
        print()

    if result["errors"]:
        print(f"Errors ({len(result['errors'])}):")
        for error in result["errors"]:
            print(f"  [X] {error}")
        print()

    print("=" * 70)

    if result["status"] == "valid":
        print()
        print("[SUCCESS] Encryption configuration is valid!")
        return 0

    print()
    print(f"[FAILED] Validation failed with {len(result['errors'])} error(s).")
    return 1


def cmd_resolve(args: argparse.Namespace) -> int:
    """Handler for 'statecrypt resolve' command.

    Args:
        args: Parsed command-line arguments containing the root document,
            override documents, environment variable name and flags.

    Returns:
        Exit code (0 when the configuration resolved without errors, 1
            otherwise).
    """
    logger = get_logger(verbose=args.verbose, debug=args.debug)
    set_global_logger(logger)

    root_path = Path(args.root).resolve() if args.root else None
    override_paths = [Path(p).resolve() for p in args.encryption_config]

    try:
        result = resolve_encryption(
            root_path, override_paths, env_var=args.env_var, logger=logger
        )
    except StateCryptError as err:
        print(f"Error: {err}")
        if args.verbose or args.debug:
            import traceback

            traceback.print_exc()
        return 1

    print("=" * 70)
    print("RESOLVE RESULTS")
    print("=" * 70)
    print("Sources (lowest precedence first):")
    for source in result.sources or ("(none)",):
        print(f"  - {source}")
    print(f"Status:      {result.status.upper()}")
    print(f"Purposes:    {', '.join(result.purposes) or '(none)'}")
    print()

    warnings = result.diagnostics.warnings()
    if warnings:
        print(f"Warnings ({len(warnings)}):")
        for warning in warnings:
            print(f"  [WARNING] {warning}")
        print()

    errors = result.diagnostics.errors()
    if errors:
        print(f"Errors ({len(errors)}):")
        for error in errors:
            print(f"  [X] {error}")
        print()
        print("=" * 70)
        print()
        print(f"[FAILED] Resolution failed with {len(errors)} error(s).")
        return 1

    if result.config_map is not None and len(result.config_map) > 0:
        print(
            yaml.safe_dump(
                result.config_map.to_dict(), default_flow_style=False, sort_keys=False
            ).rstrip()
        )
    else:
        print("No encryption configured; all purposes are pass-through.")
    print("=" * 70)
    print()
    print("[SUCCESS] Encryption configuration resolved!")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the statecrypt CLI."""
    parser = argparse.ArgumentParser(
        prog="statecrypt",
        description="statecrypt - resolve layered state encryption configuration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"statecrypt {version('statecrypt')}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        required=True,
    )

    # 'validate' command
    parser_validate = subparsers.add_parser(
        "validate",
        help="Validate one encryption configuration document",
        description="Check a YAML/JSON encryption configuration for syntax and schema errors.",
    )
    parser_validate.add_argument(
        "config",
        help="Path to the encryption configuration document",
    )
    parser_validate.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show validation progress and details",
    )
    parser_validate.set_defaults(func=cmd_validate)

    # 'resolve' command
    parser_resolve = subparsers.add_parser(
        "resolve",
        help="Merge all configuration sources and print the result",
        description=(
            "Merge the root declaration, override documents (in order) and the "
            "environment document, then print the effective configuration."
        ),
    )
    parser_resolve.add_argument(
        "--root",
        default=None,
        help="Document holding the root module's encryption declaration",
    )
    parser_resolve.add_argument(
        "--encryption-config",
        action="append",
        default=[],
        metavar="FILE",
        help="Override document; repeat to layer several (later files win)",
    )
    parser_resolve.add_argument(
        "--env-var",
        default=ENV_VAR_NAME,
        help=f"Environment variable holding the highest-precedence document (default: {ENV_VAR_NAME})",
    )
    parser_resolve.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show progress and high-level status updates",
    )
    parser_resolve.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Show detailed merge output (implies --verbose)",
    )
    parser_resolve.set_defaults(func=cmd_resolve)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the statecrypt CLI.

    This function is registered as the 'statecrypt' console script in
    pyproject.toml.
    """
    args = build_parser().parse_args(argv)
    exit_code = args.func(args)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
