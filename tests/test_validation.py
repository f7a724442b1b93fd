"""
Tests for encryption configuration validation module.

This module tests the validation functionality that checks a single
document without merging or installing it.
"""

from __future__ import annotations

from statecrypt.validation import validate_encryption_config


class TestValidateEncryptionConfig:
    """Tests for validate_encryption_config function."""

    def test_valid_config(self, create_yaml_file, sample_config_data):
        """Test that a complete document passes validation."""
        path = create_yaml_file("enc.yaml", sample_config_data)

        result = validate_encryption_config(path)

        assert result["status"] == "valid"
        assert result["errors"] == []
        assert result["warnings"] == []
        assert result["purposes"] == [
            "backend",
            "planfile",
            "remote_state:network",
            "statefile",
        ]
        assert result["config_path"] == str(path)

    def test_missing_file(self, tmp_path):
        result = validate_encryption_config(tmp_path / "missing.yaml")

        assert result["status"] == "invalid"
        assert len(result["errors"]) == 1
        assert result["purposes"] == []

    def test_duplicate_method(self, tmp_path):
        """Test that two method blocks make the document invalid."""
        path = tmp_path / "enc.yaml"
        path.write_text(
            """
backend:
  method:
    aes_gcm: {}
    chacha: {}
"""
        )

        result = validate_encryption_config(path)

        assert result["status"] == "invalid"
        assert any("Duplicate method block" in e for e in result["errors"])

    def test_duplicate_purpose_is_warning(self, tmp_path):
        path = tmp_path / "enc.yaml"
        path.write_text(
            """
statefile:
  - method:
      aes_gcm: {}
  - method:
      chacha: {}
"""
        )

        result = validate_encryption_config(path)

        assert result["status"] == "valid"
        assert any("Duplicate encryption configuration" in w for w in result["warnings"])

    def test_missing_method_is_warning(self, tmp_path):
        path = tmp_path / "enc.yaml"
        path.write_text(
            """
backend:
  key_provider:
    aws_kms:
      region: us-east-1
  method:
    aes_gcm: {}
  fallback:
    key_provider:
      aws_kms:
        region: us-east-1
"""
        )

        result = validate_encryption_config(path)

        assert result["status"] == "valid"
        assert result["warnings"] == ["backend (fallback level 1): no method declared"]

    def test_json_document(self, tmp_path):
        path = tmp_path / "enc.json"
        path.write_text('{"planfile": {"method": {"aes_gcm": {}}}}')

        result = validate_encryption_config(path)

        assert result["status"] == "valid"
        assert result["purposes"] == ["planfile"]
