"""Tests for type, access level and identifier resolution."""
import logging
import uuid

import pytest
from asyncua import ua

from plcsim.errors import UnsupportedArrayTypeError
from plcsim.types import (
    AccessLevels,
    BuiltInType,
    NodeWithIntervals,
    TypeConverter,
    format_identifier,
    parse_identifier,
)


class TestBuiltInType:

    @pytest.mark.parametrize("name, expected", [
        ("Int32", BuiltInType.INT32),
        ("uint32", BuiltInType.UINT32),
        (" Double ", BuiltInType.DOUBLE),
        ("BOOLEAN", BuiltInType.BOOLEAN),
    ])
    def test_from_string(self, name, expected):
        assert BuiltInType.from_string(name) == expected

    @pytest.mark.parametrize("name", ["Int128", "", None, 5])
    def test_unknown_type(self, name):
        with pytest.raises(ValueError):
            BuiltInType.from_string(name)

    def test_variant_type(self):
        assert TypeConverter.to_variant_type("Float") == ua.VariantType.Float
        assert TypeConverter.to_variant_type(BuiltInType.GUID) == ua.VariantType.Guid


class TestScalarValues:

    def test_integers_are_clamped(self):
        assert TypeConverter.to_value(BuiltInType.BYTE, 300) == 255
        assert TypeConverter.to_value(BuiltInType.SBYTE, -200) == -128
        assert TypeConverter.to_value(BuiltInType.UINT32, -1) == 0
        assert TypeConverter.to_value(BuiltInType.INT16, "12") == 12

    def test_booleans(self):
        assert TypeConverter.to_value(BuiltInType.BOOLEAN, "true") is True
        assert TypeConverter.to_value(BuiltInType.BOOLEAN, 0) is False

    def test_missing_value_is_default(self):
        assert TypeConverter.to_value(BuiltInType.DOUBLE, None) == 0.0
        assert TypeConverter.to_value(BuiltInType.GUID, None) == uuid.UUID(int=0)
        assert TypeConverter.to_value(BuiltInType.INT64, None) == 0

    def test_fractional_float_truncation_is_logged(self, caplog):
        assert TypeConverter.to_value(BuiltInType.INT32, 5.7) == 5
        assert TypeConverter.to_array(BuiltInType.UINT32, [1.0, 2.9]) == [1, 2]

        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert warnings == ["Value 5.7 truncated to integer 5", "Value 2.9 truncated to integer 2"]

    def test_integral_float_is_not_logged(self, caplog):
        assert TypeConverter.to_value(BuiltInType.INT16, 4.0) == 4

        assert not [r for r in caplog.records if r.levelno == logging.WARNING]

    def test_uncoercible_value_raises(self):
        with pytest.raises(ValueError):
            TypeConverter.to_value(BuiltInType.INT32, "many")

    def test_default_for_variant(self):
        assert TypeConverter.default_for_variant(ua.VariantType.String) == ""
        assert TypeConverter.default_for_variant(ua.VariantType.Boolean) is False


class TestArrayValues:

    @pytest.mark.parametrize("data_type, values, expected", [
        (BuiltInType.STRING, [1, "a"], ["1", "a"]),
        (BuiltInType.BOOLEAN, [1, "false"], [True, False]),
        (BuiltInType.FLOAT, [1, "2.5"], [1.0, 2.5]),
        (BuiltInType.UINT32, [5, -5], [5, 0]),
        (BuiltInType.INT32, ["-7", 2 ** 40], [-7, 2 ** 31 - 1]),
    ])
    def test_supported_arrays(self, data_type, values, expected):
        assert TypeConverter.to_array(data_type, values) == expected

    @pytest.mark.parametrize("data_type", [BuiltInType.DOUBLE, BuiltInType.BYTE, BuiltInType.GUID])
    def test_unsupported_arrays(self, data_type):
        with pytest.raises(UnsupportedArrayTypeError):
            TypeConverter.to_array(data_type, [1])


class TestAccessLevels:

    def test_known_names(self):
        assert AccessLevels.resolve("CurrentRead") == 0x01
        assert AccessLevels.resolve("CurrentReadOrWrite") == 0x03
        assert AccessLevels.resolve("HistoryReadOrWrite") == 0x0C

    @pytest.mark.parametrize("name", ["currentread", "Everything", None])
    def test_unknown_names(self, name):
        assert AccessLevels.resolve(name) is None


class TestIdentifiers:

    @pytest.mark.parametrize("raw, expected", [
        ("42", 42),
        (42, 42),
        ("4294967295", 4294967295),
        ("4294967296", "4294967296"),
        ("-1", "-1"),
        (-1, "-1"),
        ("Boiler", "Boiler"),
        (True, "True"),
    ])
    def test_parse_identifier(self, raw, expected):
        assert parse_identifier(raw) == expected

    def test_parse_guid_identifier(self):
        guid = uuid.uuid4()

        assert parse_identifier(str(guid)) == guid
        assert parse_identifier(str(guid).upper()) == guid

    def test_format_identifier(self):
        guid = uuid.UUID(int=1)

        assert format_identifier(7) == "i=7"
        assert format_identifier("a") == "s=a"
        assert format_identifier(guid) == f"g={guid}"

    def test_expanded_node_id(self):
        node = NodeWithIntervals(node_id="i=7", namespace="http://x/")

        assert node.expanded_node_id == "nsu=http://x/;i=7"
