"""
Unit tests for conversion options and name handling.
"""

import sys
from pathlib import Path
import unittest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bedrock_voxel.errors import OptionsValidationError
from bedrock_voxel.options import (
    FINE,
    STANDARD,
    ConversionOptions,
    geometry_identifier,
    sanitize_name,
)


class TestSanitizeName(unittest.TestCase):
    """Tests for sanitize_name."""

    def test_basic(self):
        assert sanitize_name("My Robot!") == "my_robot"
        assert sanitize_name("__tree--v2__") == "tree_v2"

    def test_leading_digit(self):
        assert sanitize_name("3d-model") == "model_3d_model"

    def test_empty_falls_back(self):
        assert sanitize_name("") == "custom_model"
        assert sanitize_name("!!!") == "custom_model"

    def test_truncated(self):
        name = sanitize_name("a" * 40)
        assert len(name) == 32
        assert not sanitize_name("abc_" * 10).endswith("_")

    def test_identifier(self):
        assert geometry_identifier("robot") == "geometry.custom.robot"
        assert geometry_identifier("robot", "acme") == "geometry.acme.robot"


class TestConversionOptions(unittest.TestCase):
    """Tests for ConversionOptions."""

    def test_defaults_are_valid(self):
        options = ConversionOptions()
        assert options.errors() == []
        assert options.validate() is options
        assert options.resolution == 16
        assert options.entity_name == "custom_model"
        assert options.namespace == "custom"

    def test_presets(self):
        assert STANDARD.resolution == 16
        assert FINE.resolution == 32
        assert ConversionOptions.preset("fine", scale=2.0).scale == 2.0
        with self.assertRaises(ValueError):
            ConversionOptions.preset("huge")

    def test_scale_limits(self):
        for scale in (0.0, -1.0, 10.5):
            with self.assertRaises(OptionsValidationError):
                ConversionOptions(scale=scale).validate()
        ConversionOptions(scale=10.0).validate()

    def test_collects_all_errors(self):
        options = ConversionOptions(scale=0.0, resolution=0, texture_width=0)
        with self.assertRaises(OptionsValidationError) as ctx:
            options.validate()
        assert len(ctx.exception.errors) == 3

    def test_resolution_must_be_integer(self):
        for resolution in (float("nan"), float("inf"), 16.5, 16.0, "16", True):
            with self.assertRaises(OptionsValidationError):
                ConversionOptions(resolution=resolution).validate()
        ConversionOptions(resolution=8).validate()

    def test_bad_entity_name(self):
        with self.assertRaises(OptionsValidationError):
            ConversionOptions(identifier="geometry.custom.Bad-Name").validate()
        with self.assertRaises(OptionsValidationError):
            ConversionOptions(identifier="").validate()

    def test_from_model_name(self):
        options = ConversionOptions.from_model_name("Fancy Chair.v2", namespace="shop")
        assert options.identifier == "geometry.shop.fancy_chair_v2"
        assert options.entity_name == "fancy_chair_v2"
        assert options.namespace == "shop"

    def test_with_changes(self):
        options = ConversionOptions()
        changed = options.with_changes(resolution=32)
        assert changed.resolution == 32
        assert options.resolution == 16


if __name__ == "__main__":
    unittest.main(verbosity=2)
