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

"""Diagnostics collected while loading and decoding encryption configuration.

Decoding never raises for problems inside a document. Instead each problem
becomes a Diagnostic attributed to the source it came from, and callers
decide what to do once every source has been processed. This lets one bad
override file be reported without hiding problems in the files after it.

Example:
    Accumulate and check:
        ```python
        from statecrypt.diagnostics import Diagnostics

        diags = Diagnostics()
        cfg, cfg_diags = decode_config_map(body, rng)
        diags.extend(cfg_diags)
        if diags.has_errors():
            for d in diags.errors():
                print(d)
        ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from statecrypt.exceptions import ConfigError

__all__ = ["Severity", "SourceRange", "Diagnostic", "Diagnostics"]


class Severity(str, Enum):
    """How serious a diagnostic is."""

    ERROR = "error"
    WARNING = "warning"


@dataclass(frozen=True)
class SourceRange:
    """Location of a construct inside a configuration document.

    Attributes:
        filename: File path, or a pseudo-name such as "$TF_STATE_ENCRYPTION"
            for the environment document.
        path: Dotted path of the construct inside the document
            (e.g., "backend.key_provider.aws_kms"). Empty for the document
            itself.
    """

    filename: str
    path: str = ""

    def child(self, *segments: str) -> SourceRange:
        """Return the range of a construct nested below this one."""
        parts = [self.path] if self.path else []
        parts.extend(segments)
        return SourceRange(self.filename, ".".join(parts))

    def __str__(self) -> str:
        if self.path:
            return f"{self.filename}: {self.path}"
        return self.filename


@dataclass(frozen=True)
class Diagnostic:
    """A single problem found in a configuration source.

    Attributes:
        severity: ERROR blocks installation of the result; WARNING does not.
        summary: Short one-line description.
        detail: Longer explanation, may be empty.
        subject: Where the problem was found, if known.
    """

    severity: Severity
    summary: str
    detail: str = ""
    subject: SourceRange | None = None

    def __str__(self) -> str:
        text = self.summary
        if self.detail:
            text = f"{text}: {self.detail}"
        if self.subject is not None:
            text = f"{self.subject}: {text}"
        return text


class Diagnostics(list):
    """List of Diagnostic with severity helpers."""

    def error(
        self, summary: str, detail: str = "", subject: SourceRange | None = None
    ) -> None:
        self.append(Diagnostic(Severity.ERROR, summary, detail, subject))

    def warning(
        self, summary: str, detail: str = "", subject: SourceRange | None = None
    ) -> None:
        self.append(Diagnostic(Severity.WARNING, summary, detail, subject))

    def has_errors(self) -> bool:
        return any(d.severity is Severity.ERROR for d in self)

    def errors(self) -> list[Diagnostic]:
        return [d for d in self if d.severity is Severity.ERROR]

    def warnings(self) -> list[Diagnostic]:
        return [d for d in self if d.severity is Severity.WARNING]

    def raise_for_errors(self) -> None:
        """Raise ConfigError listing every error diagnostic, if any.

        Raises:
            ConfigError: If at least one diagnostic has ERROR severity.
        """
        errors = self.errors()
        if errors:
            lines = "\n".join(f"  - {d}" for d in errors)
            raise ConfigError(
                f"encryption configuration has {len(errors)} error(s):\n{lines}"
            )
