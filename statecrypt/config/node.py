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

"""Per-purpose encryption configuration nodes.

A ConfigNode holds the encryption intent for one purpose (or one fallback
level of it): whether encryption is required, which key provider and which
method to use, and optionally a nested fallback node used to decrypt data
written with older settings during key rotation.

Document Shape:
    Each purpose block body is decoded with this schema (YAML shown):

        required: true              # optional bool, default false
        key_provider:
          aws_kms:                  # exactly one provider type label
            region: us-east-1
        method:
          aes_gcm: {}               # exactly one method type label
        fallback:                   # optional, same shape, recursive
          key_provider:
            aws_kms:
              region: eu-west-1
          method:
            aes_gcm: {}

    Declaring two key_provider, method or fallback blocks in one node is an
    error diagnostic and no node is produced for the enclosing block. This
    includes writing the same key twice, and repeating an argument inside a
    key_provider or method body.

Fallback Depth:
    Chains are limited to MAX_FALLBACK_DEPTH levels below the primary node,
    both when decoding and when merging.

"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator

from statecrypt.config.body import (
    AttributeSchema,
    BlockHeaderSchema,
    Body,
    BodySchema,
)
from statecrypt.diagnostics import Diagnostics, SourceRange
from statecrypt.exceptions import ConfigError

__all__ = [
    "MAX_FALLBACK_DEPTH",
    "NODE_SCHEMA",
    "TypedBlock",
    "ConfigNode",
    "decode_node",
]

MAX_FALLBACK_DEPTH = 16

NODE_SCHEMA = BodySchema(
    attributes=(AttributeSchema("required"),),
    blocks=(
        BlockHeaderSchema("key_provider", ("type",)),
        BlockHeaderSchema("method", ("type",)),
        BlockHeaderSchema("fallback"),
    ),
)

# Blocks that may appear at most once per node
_SINGLETON_BLOCKS = ("key_provider", "method", "fallback")


@dataclass
class TypedBlock:
    """A key_provider or method declaration.

    Attributes:
        type: Plugin type taken from the block label (e.g., "aws_kms").
        body: Plugin configuration; not interpreted by statecrypt.
        decl_range: Where the block was declared.
    """

    type: str
    body: Body
    decl_range: SourceRange

    def to_dict(self) -> dict[str, Any]:
        return {self.type: self.body.to_dict()}


@dataclass
class ConfigNode:
    """Encryption intent for one purpose or one fallback level.

    Attributes:
        required: Whether encryption must succeed rather than pass through.
        key_provider: Which key material to use.
        method: Which encryption method to use.
        fallback: Alternate configuration tried when decrypting with this
            node fails. Owned exclusively by this node.
        decl_range: Where the node was declared.
    """

    required: bool = False
    key_provider: TypedBlock | None = None
    method: TypedBlock | None = None
    fallback: ConfigNode | None = None
    decl_range: SourceRange | None = None

    def merge(self, override: ConfigNode) -> None:
        """Fold override into this node in place (see merge.merge_node)."""
        from statecrypt.config.merge import merge_node

        merge_node(self, override)

    def chain(self) -> Iterator[ConfigNode]:
        """Yield this node, then its fallback, then the fallback's fallback.

        Raises:
            ConfigError: If the chain loops back on itself.
        """
        seen: set[int] = set()
        node: ConfigNode | None = self
        while node is not None:
            if id(node) in seen:
                raise ConfigError(
                    f"fallback chain declared at {self.decl_range} is cyclic"
                )
            seen.add(id(node))
            yield node
            node = node.fallback

    def depth(self) -> int:
        """Number of fallback levels below this node."""
        return sum(1 for _ in self.chain()) - 1

    def to_dict(self) -> dict[str, Any]:
        """Render the node back into document form."""
        out: dict[str, Any] = {"required": self.required}
        if self.key_provider is not None:
            out["key_provider"] = self.key_provider.to_dict()
        if self.method is not None:
            out["method"] = self.method.to_dict()
        if self.fallback is not None:
            out["fallback"] = self.fallback.to_dict()
        return out


def decode_node(
    body: Body, decl_range: SourceRange, depth: int = 0
) -> tuple[ConfigNode | None, Diagnostics]:
    """Decode one purpose block body (or fallback body) into a ConfigNode.

    Args:
        body: The block body.
        decl_range: Where the block was declared.
        depth: Fallback level of this body; 0 for a purpose block.

    Returns:
        A tuple (node, diagnostics). node is None when any error diagnostic
            was produced for this body or one of its fallbacks.
    """
    content, diags = body.content(NODE_SCHEMA)
    node = ConfigNode(decl_range=decl_range)

    required = content.attributes.get("required")
    if required is not None:
        if isinstance(required.value, bool):
            node.required = required.value
        else:
            diags.error(
                "Invalid value for required",
                f"Expected a bool, got {type(required.value).__name__}.",
                required.range,
            )

    for block_type in _SINGLETON_BLOCKS:
        blocks = content.blocks_of_type(block_type)
        for extra in blocks[1:]:
            diags.error(
                f"Duplicate {block_type} block",
                f"Only one {block_type} block is allowed per encryption "
                f"configuration; the first was declared at {blocks[0].def_range}.",
                extra.def_range,
            )

    for block in content.blocks_of_type("key_provider") + content.blocks_of_type("method"):
        for rng in block.body.repeated_keys():
            diags.error(
                "Duplicate argument",
                "The same argument is set more than once in this block.",
                rng,
            )

    providers = content.blocks_of_type("key_provider")
    if len(providers) == 1:
        block = providers[0]
        node.key_provider = TypedBlock(block.labels[0], block.body, block.def_range)

    methods = content.blocks_of_type("method")
    if len(methods) == 1:
        block = methods[0]
        node.method = TypedBlock(block.labels[0], block.body, block.def_range)

    fallbacks = content.blocks_of_type("fallback")
    if len(fallbacks) == 1:
        block = fallbacks[0]
        if depth + 1 > MAX_FALLBACK_DEPTH:
            diags.error(
                "Fallback chain too deep",
                f"At most {MAX_FALLBACK_DEPTH} nested fallback blocks are allowed.",
                block.def_range,
            )
        else:
            child, child_diags = decode_node(block.body, block.def_range, depth + 1)
            diags.extend(child_diags)
            node.fallback = child

    if diags.has_errors():
        return None, diags
    return node, diags
