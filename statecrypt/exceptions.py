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

"""Exception hierarchy for statecrypt.

This module defines a custom exception hierarchy that allows library users
to distinguish between different types of errors. All exceptions inherit from
StateCryptError, allowing users to catch all statecrypt errors with a single
except clause if needed.

Decode problems inside a document are not raised; they are collected as
diagnostics (see statecrypt.diagnostics). Exceptions are reserved for
failures that must stop the caller: merge guard violations, a second
registry setup, and lookups of a purpose nobody configured.

Example:
    Catching a missing purpose:
        ```python
        from statecrypt.encryption import get_singleton
        from statecrypt.exceptions import MissingEncryptionConfigError

        try:
            flow = get_singleton().remote_state()
        except MissingEncryptionConfigError as e:
            print(f"No configuration for {e.purpose}")
        ```

    Catching all statecrypt errors:
        ```python
        from statecrypt.exceptions import StateCryptError

        try:
            flow = get_singleton().state_file()
        except StateCryptError as e:
            print(f"statecrypt error: {e}")
        ```
"""

from __future__ import annotations

__all__ = [
    "StateCryptError",
    "ConfigError",
    "MissingEncryptionConfigError",
]


class StateCryptError(Exception):
    """Base exception for all statecrypt errors.

    All statecrypt-specific exceptions inherit from this class, allowing users
    to catch all statecrypt errors with a single except clause if needed.
    """

    pass


class ConfigError(StateCryptError):
    """Raised for configuration-related errors.

    This exception is raised when there are problems with:

    - Diagnostics containing errors being promoted to an exception
    - Fallback chains that would become cyclic or too deep during a merge
    - Setting up the process-wide registry more than once
    """

    pass


class MissingEncryptionConfigError(ConfigError):
    """Raised when a fixed purpose has no resolved configuration.

    Only raised for the in-schema purposes (backend, statefile, planfile)
    and only when some configuration was supplied. With no configuration
    at all every purpose is pass-through.

    Attributes:
        purpose: The purpose key that was looked up.
    """

    def __init__(self, purpose: str) -> None:
        super().__init__(f'missing encryption configuration for "{purpose}"')
        self.purpose = purpose
