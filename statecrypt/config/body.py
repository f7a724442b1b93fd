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

"""Structured configuration bodies with schema-driven extraction.

A Body wraps one parsed YAML/JSON mapping and knows where it came from.
Callers never walk the raw mapping themselves; they describe what they
expect with a BodySchema and call Body.content(), which splits the mapping
into attributes and blocks and reports anything unexpected as diagnostics.

Block Conventions:
    Blocks are written the way HCL's JSON syntax writes them:

    - A block type key maps to a mapping, or to a list of mappings where
      each element declares one block.
    - A block type with N labels nests N mapping levels, one per label.
      Every distinct label path is a separate block, so
      ``method: {aes_gcm: {...}, other: {...}}`` declares two method blocks.
    - A null block body is treated as an empty body.
    - A key repeated in one mapping arrives from the loader as a
      RepeatedKey and declares one block per occurrence. A repeated
      attribute is an error.

    For example, this YAML declares one labeled ``key_provider`` block of
    type ``aws_kms`` with a single ``region`` attribute:

        key_provider:
          aws_kms:
            region: us-east-1

Merge Behavior:
    Body.merge() combines two bodies with "override wins" semantics:

    - **Attributes**: override's value replaces base's value
    - **Nested mappings**: merged key by key (union of blocks by type+labels)
    - **Lists**: Completely replaced (NOT appended/extended)
    - **Type mismatch**: override's value replaces base's, no coercion

Example:
    Extract typed content:
        ```python
        from statecrypt.config.body import (
            AttributeSchema, BlockHeaderSchema, Body, BodySchema,
        )
        from statecrypt.diagnostics import SourceRange

        body = Body({"required": True, "method": {"aes_gcm": {}}},
                    SourceRange("enc.yaml", "backend"))
        schema = BodySchema(
            attributes=(AttributeSchema("required"),),
            blocks=(BlockHeaderSchema("method", ("type",)),),
        )
        content, diags = body.content(schema)
        print(content.blocks[0].labels)  # ('aes_gcm',)
        ```

"""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any

from statecrypt.diagnostics import Diagnostics, SourceRange

__all__ = [
    "AttributeSchema",
    "BlockHeaderSchema",
    "BodySchema",
    "Attribute",
    "Block",
    "BodyContent",
    "Body",
    "deep_merge",
    "RepeatedKey",
]

# -------------------------------
# Schema types
# -------------------------------


@dataclass(frozen=True)
class AttributeSchema:
    name: str
    required: bool = False


@dataclass(frozen=True)
class BlockHeaderSchema:
    type: str
    label_names: tuple[str, ...] = ()


@dataclass(frozen=True)
class BodySchema:
    attributes: tuple[AttributeSchema, ...] = ()
    blocks: tuple[BlockHeaderSchema, ...] = ()


class RepeatedKey(list):
    """Every value of a key that appeared more than once in one mapping.

    Produced by the document loader so repeated keys are never silently
    collapsed to their last value. Values are kept in document order.
    """

    @classmethod
    def store(cls, mapping: dict[Any, Any], key: Any, value: Any) -> None:
        """Set mapping[key], collecting values if key is already present."""
        if key not in mapping:
            mapping[key] = value
        elif isinstance(mapping[key], cls):
            mapping[key].append(value)
        else:
            mapping[key] = cls([mapping[key], value])


# -------------------------------
# Content types
# -------------------------------


@dataclass(frozen=True)
class Attribute:
    name: str
    value: Any
    range: SourceRange


@dataclass(frozen=True)
class Block:
    """One block extracted from a body.

    Attributes:
        type: Block type (the schema key, e.g., "method").
        labels: Label values in schema order (e.g., ("aes_gcm",)).
        body: The block's own body, ready for further extraction.
        def_range: Where the block was declared.
    """

    type: str
    labels: tuple[str, ...]
    body: Body
    def_range: SourceRange


@dataclass
class BodyContent:
    attributes: dict[str, Attribute] = field(default_factory=dict)
    blocks: list[Block] = field(default_factory=list)

    def blocks_of_type(self, block_type: str) -> list[Block]:
        return [b for b in self.blocks if b.type == block_type]


# -------------------------------
# Merge logic
# -------------------------------


def deep_merge(base: Mapping[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Deep-merges two mappings with "overlay wins" semantics.

    Merge behavior:

    - dict + dict -> deep merge
    - list + list -> overlay REPLACES base (not concatenated)
    - everything else -> overlay overwrites base

    This function does not mutate inputs; returns a new dict.

    Args:
        base: The base mapping.
        overlay: The overlay mapping that takes precedence.

    Returns:
        A new dictionary with the merged contents.
    """
    result: dict[str, Any] = deepcopy(dict(base))
    for k, v in overlay.items():
        if k in result and isinstance(result[k], Mapping) and isinstance(v, Mapping):
            result[k] = deep_merge(result[k], v)
        else:
            # Replace lists and scalars entirely
            result[k] = deepcopy(v)
    return result


# -------------------------------
# Body
# -------------------------------


class Body:
    """A parsed configuration mapping plus the range it was declared at."""

    def __init__(self, data: Mapping[str, Any] | None, source: SourceRange) -> None:
        self._data: dict[str, Any] = dict(data or {})
        self.source = source

    def __repr__(self) -> str:
        return f"Body({self._data!r}, source={str(self.source)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Body):
            return NotImplemented
        return self._data == other._data

    __hash__ = None  # type: ignore[assignment]

    def to_dict(self) -> dict[str, Any]:
        """Return a deep copy of the raw mapping."""
        return deepcopy(self._data)

    def repeated_keys(self) -> list[SourceRange]:
        """Ranges of every key repeated anywhere below this body."""
        found: list[SourceRange] = []
        _find_repeated(self._data, self.source, found)
        return found

    def merge(self, override: Body) -> Body:
        """Return a new body with override's values layered on top of this one.

        Neither body is modified. The result carries override's source range
        since override's values win on conflict.
        """
        return Body(deep_merge(self._data, override._data), override.source)

    def content(self, schema: BodySchema) -> tuple[BodyContent, Diagnostics]:
        """Extract the attributes and blocks described by schema.

        Args:
            schema: Expected attributes and block types.

        Returns:
            A tuple (content, diagnostics). Unknown keys, malformed blocks and
                missing required attributes are reported as error
                diagnostics; the offending construct is left out of content.
        """
        diags = Diagnostics()
        content = BodyContent()
        attr_schemas = {a.name: a for a in schema.attributes}
        block_schemas = {b.type: b for b in schema.blocks}

        for raw_key, value in self._data.items():
            key = str(raw_key)
            rng = self.source.child(key)
            if key in attr_schemas:
                if isinstance(value, RepeatedKey):
                    diags.error(
                        "Attribute redefined",
                        f'The argument "{key}" was set {len(value)} times.',
                        rng,
                    )
                    continue
                content.attributes[key] = Attribute(key, value, rng)
            elif key in block_schemas:
                self._collect_blocks(
                    block_schemas[key], value, (), rng, content.blocks, diags
                )
            else:
                diags.error(
                    "Unsupported argument",
                    f'An argument or block named "{key}" is not expected here.',
                    rng,
                )

        for attr in schema.attributes:
            if attr.required and attr.name not in content.attributes:
                diags.error(
                    "Missing required argument",
                    f'The argument "{attr.name}" is required.',
                    self.source,
                )

        return content, diags

    def _collect_blocks(
        self,
        header: BlockHeaderSchema,
        value: Any,
        labels: tuple[str, ...],
        rng: SourceRange,
        out: list[Block],
        diags: Diagnostics,
    ) -> None:
        # A list at any level declares several blocks sharing the labels so far
        if isinstance(value, list):
            for idx, item in enumerate(value):
                item_rng = SourceRange(rng.filename, f"{rng.path}[{idx}]")
                self._collect_blocks(header, item, labels, item_rng, out, diags)
            return

        if len(labels) == len(header.label_names):
            if value is None:
                value = {}
            if not isinstance(value, Mapping):
                diags.error(
                    "Invalid block body",
                    f'A "{header.type}" block body must be a mapping, '
                    f"got {type(value).__name__}.",
                    rng,
                )
                return
            out.append(Block(header.type, labels, Body(value, rng), rng))
            return

        missing = header.label_names[len(labels)]
        if not isinstance(value, Mapping) or not value:
            diags.error(
                "Missing block label",
                f'A "{header.type}" block requires a {missing} label.',
                rng,
            )
            return
        for label, inner in value.items():
            self._collect_blocks(
                header, inner, labels + (str(label),), rng.child(str(label)), out, diags
            )


def _find_repeated(value: Any, rng: SourceRange, found: list[SourceRange]) -> None:
    if isinstance(value, Mapping):
        for key, inner in value.items():
            child = rng.child(str(key))
            if isinstance(inner, RepeatedKey):
                found.append(child)
            _find_repeated(inner, child, found)
    elif isinstance(value, list):
        for idx, item in enumerate(value):
            _find_repeated(item, SourceRange(rng.filename, f"{rng.path}[{idx}]"), found)
