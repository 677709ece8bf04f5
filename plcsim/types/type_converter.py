"""
Data type and access level resolution.

This module maps the data type and access level names used in node
configuration files to asyncua variant types and OPC UA access level bytes,
and coerces configured values to the declared type.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union
import uuid

from asyncua import ua

from ..errors import UnsupportedArrayTypeError
from ..logging import log_warn


class BuiltInType(Enum):
    """
    OPC UA built-in scalar types supported in node configuration.

    Values are the spellings used in configuration files.
    """
    BOOLEAN = "Boolean"
    SBYTE = "SByte"
    BYTE = "Byte"
    INT16 = "Int16"
    UINT16 = "UInt16"
    INT32 = "Int32"
    UINT32 = "UInt32"
    INT64 = "Int64"
    UINT64 = "UInt64"
    FLOAT = "Float"
    DOUBLE = "Double"
    STRING = "String"
    DATETIME = "DateTime"
    GUID = "Guid"
    BYTESTRING = "ByteString"

    @classmethod
    def from_string(cls, type_str: str) -> 'BuiltInType':
        """
        Parse a built-in type name, case-insensitive.

        Raises:
            ValueError: If the type name is not recognized
        """
        if not isinstance(type_str, str):
            raise ValueError(f"Unknown data type: {type_str!r}")

        normalized = type_str.strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        raise ValueError(f"Unknown data type: {type_str}")


class AccessLevels:
    """OPC UA access level bytes, by the names used in node configuration."""
    NONE = 0x00
    CURRENT_READ = 0x01
    CURRENT_WRITE = 0x02
    CURRENT_READ_OR_WRITE = 0x03
    HISTORY_READ = 0x04
    HISTORY_WRITE = 0x08
    HISTORY_READ_OR_WRITE = 0x0C

    BY_NAME: dict[str, int] = {
        "None": NONE,
        "CurrentRead": CURRENT_READ,
        "CurrentWrite": CURRENT_WRITE,
        "CurrentReadOrWrite": CURRENT_READ_OR_WRITE,
        "HistoryRead": HISTORY_READ,
        "HistoryWrite": HISTORY_WRITE,
        "HistoryReadOrWrite": HISTORY_READ_OR_WRITE,
    }

    @classmethod
    def resolve(cls, name: Any) -> Optional[int]:
        """Return the access level byte for a name, or None if unknown."""
        if not isinstance(name, str):
            return None
        return cls.BY_NAME.get(name.strip())


class ValueRank:
    """Value ranks used when creating variables."""
    SCALAR = -1
    ONE_DIMENSION = 1


class TypeConverter:
    """
    Converts configured values to asyncua compatible values.

    Handles:
    - Type mapping (BuiltInType -> ua.VariantType)
    - Scalar coercion with range clamping for integer types
    - Array coercion for the array types node files may declare
    """

    TO_VARIANT: dict[BuiltInType, ua.VariantType] = {
        BuiltInType.BOOLEAN: ua.VariantType.Boolean,
        BuiltInType.SBYTE: ua.VariantType.SByte,
        BuiltInType.BYTE: ua.VariantType.Byte,
        BuiltInType.INT16: ua.VariantType.Int16,
        BuiltInType.UINT16: ua.VariantType.UInt16,
        BuiltInType.INT32: ua.VariantType.Int32,
        BuiltInType.UINT32: ua.VariantType.UInt32,
        BuiltInType.INT64: ua.VariantType.Int64,
        BuiltInType.UINT64: ua.VariantType.UInt64,
        BuiltInType.FLOAT: ua.VariantType.Float,
        BuiltInType.DOUBLE: ua.VariantType.Double,
        BuiltInType.STRING: ua.VariantType.String,
        BuiltInType.DATETIME: ua.VariantType.DateTime,
        BuiltInType.GUID: ua.VariantType.Guid,
        BuiltInType.BYTESTRING: ua.VariantType.ByteString,
    }

    # (bits, signed) per integer type
    INTEGER_RANGES: dict[BuiltInType, tuple[int, bool]] = {
        BuiltInType.SBYTE: (8, True),
        BuiltInType.BYTE: (8, False),
        BuiltInType.INT16: (16, True),
        BuiltInType.UINT16: (16, False),
        BuiltInType.INT32: (32, True),
        BuiltInType.UINT32: (32, False),
        BuiltInType.INT64: (64, True),
        BuiltInType.UINT64: (64, False),
    }

    @classmethod
    def to_variant_type(cls, data_type: Union[str, BuiltInType]) -> ua.VariantType:
        """
        Get the asyncua VariantType for a built-in type.

        Raises:
            ValueError: If the type is not supported
        """
        if isinstance(data_type, str):
            data_type = BuiltInType.from_string(data_type)
        return cls.TO_VARIANT[data_type]

    @classmethod
    def to_value(cls, data_type: BuiltInType, value: Any) -> Any:
        """
        Coerce a configured scalar value to the declared type.

        A missing value becomes the type's default value.

        Raises:
            ValueError, TypeError: If the value cannot represent the type
        """
        if value is None:
            return cls.default_value(data_type)

        if data_type == BuiltInType.BOOLEAN:
            return cls._convert_bool(value)

        if data_type in cls.INTEGER_RANGES:
            bits, signed = cls.INTEGER_RANGES[data_type]
            int_val = cls._to_int(value)
            if signed:
                return cls._clamp_signed(int_val, bits)
            return cls._clamp_unsigned(int_val, bits)

        if data_type in (BuiltInType.FLOAT, BuiltInType.DOUBLE):
            return float(value)

        if data_type == BuiltInType.STRING:
            return str(value)

        if data_type == BuiltInType.GUID:
            return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))

        if data_type == BuiltInType.DATETIME:
            if isinstance(value, datetime):
                return value
            return datetime.fromisoformat(str(value))

        if data_type == BuiltInType.BYTESTRING:
            if isinstance(value, (bytes, bytearray)):
                return bytes(value)
            if isinstance(value, list):
                return bytes(value)
            return str(value).encode("utf-8")

        return value

    @classmethod
    def to_array(cls, data_type: BuiltInType, values: list) -> list:
        """
        Coerce a JSON array to a typed array.

        Only String, Boolean, Float, UInt32 and Int32 arrays are supported.

        Raises:
            UnsupportedArrayTypeError: For any other declared type
        """
        if data_type == BuiltInType.STRING:
            return [str(v) for v in values]
        if data_type == BuiltInType.BOOLEAN:
            return [cls._convert_bool(v) for v in values]
        if data_type == BuiltInType.FLOAT:
            return [float(v) for v in values]
        if data_type == BuiltInType.UINT32:
            return [cls._clamp_unsigned(cls._to_int(v), 32) for v in values]
        if data_type == BuiltInType.INT32:
            return [cls._clamp_signed(cls._to_int(v), 32) for v in values]
        raise UnsupportedArrayTypeError(f"Node type not implemented for arrays: {data_type.value}")

    @classmethod
    def default_value(cls, data_type: BuiltInType) -> Any:
        """Get default value for a built-in type."""
        if data_type == BuiltInType.BOOLEAN:
            return False
        elif data_type in (BuiltInType.FLOAT, BuiltInType.DOUBLE):
            return 0.0
        elif data_type == BuiltInType.STRING:
            return ""
        elif data_type == BuiltInType.GUID:
            return uuid.UUID(int=0)
        elif data_type == BuiltInType.DATETIME:
            return datetime(1601, 1, 1, tzinfo=timezone.utc)
        elif data_type == BuiltInType.BYTESTRING:
            return b""
        else:
            return 0

    @classmethod
    def default_for_variant(cls, variant_type: ua.VariantType) -> Any:
        """Get default value for an asyncua variant type."""
        for data_type, vtype in cls.TO_VARIANT.items():
            if vtype == variant_type:
                return cls.default_value(data_type)
        return None

    @classmethod
    def _convert_bool(cls, value: Any) -> bool:
        """Convert any value to boolean."""
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return value != 0
        if isinstance(value, str):
            return value.lower() in ('true', '1', 'yes', 'on')
        return bool(value)

    @classmethod
    def _to_int(cls, value: Any) -> int:
        """Convert to int; fractional floats are truncated with a warning."""
        if isinstance(value, float) and not value.is_integer():
            log_warn(f"Value {value} truncated to integer {int(value)}")
        return int(value)

    @classmethod
    def _clamp_signed(cls, value: int, bits: int) -> int:
        """Clamp value to signed integer range."""
        min_val = -(1 << (bits - 1))
        max_val = (1 << (bits - 1)) - 1
        return max(min_val, min(max_val, value))

    @classmethod
    def _clamp_unsigned(cls, value: int, bits: int) -> int:
        """Clamp value to unsigned integer range."""
        max_val = (1 << bits) - 1
        return max(0, min(max_val, value))
