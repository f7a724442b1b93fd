"""
Tests for statecrypt.config.node module.

Tests per-purpose node decoding including:
- required, key_provider, method and fallback extraction
- Duplicate inner blocks rejected as diagnostics
- Fallback depth limit
- Chain iteration and rendering
"""

from __future__ import annotations

import pytest

from statecrypt.config.loader import parse_document
from statecrypt.config.node import MAX_FALLBACK_DEPTH, ConfigNode, decode_node
from statecrypt.diagnostics import SourceRange
from statecrypt.exceptions import ConfigError

RANGE = SourceRange("test.yaml", "backend")


class TestDecodeNode:
    """Tests for decode_node."""

    def test_full_node(self, make_body):
        """Test decoding a node with every field set."""
        body = make_body(
            {
                "required": True,
                "key_provider": {"aws_kms": {"region": "us-east-1"}},
                "method": {"aes_gcm": {}},
                "fallback": {"method": {"aes_gcm": {"legacy": True}}},
            }
        )

        node, diags = decode_node(body, RANGE)

        assert not diags.has_errors()
        assert node.required is True
        assert node.key_provider.type == "aws_kms"
        assert node.key_provider.body.to_dict() == {"region": "us-east-1"}
        assert node.method.type == "aes_gcm"
        assert node.fallback is not None
        assert node.fallback.required is False
        assert node.fallback.method.body.to_dict() == {"legacy": True}
        assert node.decl_range == RANGE

    def test_empty_node_defaults(self, make_body):
        """Test that an empty body decodes to a non-required empty node."""
        node, diags = decode_node(make_body({}), RANGE)

        assert not diags
        assert node == ConfigNode(decl_range=RANGE)

    def test_duplicate_method_is_error_not_abort(self, make_body):
        """Test that two method blocks yield a diagnostic and no node."""
        body = make_body({"method": {"aes_gcm": {}, "chacha": {}}})

        node, diags = decode_node(body, RANGE)

        assert node is None
        assert diags.has_errors()
        assert diags.errors()[0].summary == "Duplicate method block"

    def test_duplicate_key_provider_as_list_is_error(self, make_body):
        """Test that a list of two key_provider blocks is rejected."""
        body = make_body(
            {"key_provider": [{"aws_kms": {}}, {"aws_kms": {"region": "x"}}]}
        )

        node, diags = decode_node(body, RANGE)

        assert node is None
        assert diags.errors()[0].summary == "Duplicate key_provider block"

    def test_duplicate_fallback_is_error(self, make_body):
        """Test that two fallback blocks are rejected."""
        node, diags = decode_node(make_body({"fallback": [{}, {}]}), RANGE)

        assert node is None
        assert diags.errors()[0].summary == "Duplicate fallback block"

    def test_error_in_fallback_drops_whole_node(self, make_body):
        """Test that an error nested in a fallback fails the parent too."""
        body = make_body(
            {
                "method": {"aes_gcm": {}},
                "fallback": {"method": {"a": {}, "b": {}}},
            }
        )

        node, diags = decode_node(body, RANGE)

        assert node is None
        assert diags.has_errors()

    def test_required_must_be_bool(self, make_body):
        """Test that a non-bool required is rejected."""
        node, diags = decode_node(make_body({"required": "yes"}), RANGE)

        assert node is None
        assert diags.errors()[0].summary == "Invalid value for required"

    def test_fallback_depth_limit(self, make_body):
        """Test that chains deeper than MAX_FALLBACK_DEPTH are rejected."""
        data: dict = {}
        for _ in range(MAX_FALLBACK_DEPTH + 1):
            data = {"fallback": data}

        node, diags = decode_node(make_body(data), RANGE)

        assert node is None
        assert diags.errors()[0].summary == "Fallback chain too deep"

    def test_fallback_at_depth_limit_allowed(self, make_body):
        """Test that exactly MAX_FALLBACK_DEPTH levels decode."""
        data: dict = {}
        for _ in range(MAX_FALLBACK_DEPTH):
            data = {"fallback": data}

        node, diags = decode_node(make_body(data), RANGE)

        assert not diags.has_errors()
        assert node.depth() == MAX_FALLBACK_DEPTH


class TestConfigNodeChain:
    """Tests for ConfigNode chain helpers."""

    def test_chain_order(self):
        """Test that chain yields primary first, then each fallback."""
        oldest = ConfigNode()
        old = ConfigNode(fallback=oldest)
        primary = ConfigNode(required=True, fallback=old)

        chain = list(primary.chain())

        assert len(chain) == 3
        assert chain[0] is primary
        assert chain[1] is old
        assert chain[2] is oldest
        assert primary.depth() == 2

    def test_cyclic_chain_raises(self):
        """Test that a hand-built cycle is detected."""
        a = ConfigNode()
        b = ConfigNode(fallback=a)
        a.fallback = b

        with pytest.raises(ConfigError, match="cyclic"):
            list(a.chain())

    def test_to_dict_round_trips_document_shape(self, make_body):
        """Test that to_dict renders the document form."""
        data = {
            "required": True,
            "method": {"aes_gcm": {"k": 1}},
            "fallback": {"required": False, "method": {"aes_gcm": {}}},
        }
        node, _ = decode_node(make_body(data), RANGE)

        assert node.to_dict() == data


class TestRepeatedKeysInNode:
    """Tests for keys written twice inside one node."""

    def _decode(self, text: str):
        body, parse_diags = parse_document(text, "enc.yaml")
        assert not parse_diags
        return decode_node(body, body.source)

    def test_yaml_repeated_method_is_error(self):
        node, diags = self._decode("method:\n  aes_gcm: {}\nmethod:\n  chacha: {}\n")

        assert node is None
        assert diags.errors()[0].summary == "Duplicate method block"

    def test_json_repeated_method_is_error(self):
        node, diags = self._decode('{"method": {"aes_gcm": {}}, "method": {"chacha": {}}}')

        assert node is None
        assert diags.errors()[0].summary == "Duplicate method block"

    def test_repeated_label_is_error(self):
        node, diags = self._decode("method:\n  aes_gcm: {}\n  aes_gcm: {}\n")

        assert node is None
        assert diags.errors()[0].summary == "Duplicate method block"

    def test_repeated_required_is_error(self):
        node, diags = self._decode("required: true\nrequired: false\n")

        assert node is None
        assert diags.errors()[0].summary == "Attribute redefined"

    def test_repeated_plugin_argument_is_error(self):
        text = "key_provider:\n  aws_kms:\n    region: a\n    region: b\n"

        node, diags = self._decode(text)

        assert node is None
        error = diags.errors()[0]
        assert error.summary == "Duplicate argument"
        assert str(error.subject) == "enc.yaml: key_provider.aws_kms.region"
