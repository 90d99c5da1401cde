"""Minimal-width packing of composite values as mixed-radix integers."""

from .annotations import Bits, Length, shape_from_type, sint, uint
from .builder import build_descriptor, clear_cache, get_field, set_field
from .descriptors import (
    ArrayDescriptor,
    BoolDescriptor,
    Descriptor,
    EnumDescriptor,
    FloatDescriptor,
    IntDescriptor,
    OpenEnumDescriptor,
    OptionalDescriptor,
    RecordDescriptor,
    UnionDescriptor,
    VoidDescriptor,
)
from .errors import (
    InvalidTag,
    InvalidValue,
    OutOfRange,
    PackingError,
    UnknownField,
    UnsupportedShape,
    WidthOverflow,
    WrongVariant,
)
from .serialization import Struct, TaggedUnion
from .types import (
    ArrayShape,
    BoolShape,
    EnumShape,
    FieldShape,
    FloatShape,
    IntShape,
    OptionalShape,
    RecordShape,
    Shape,
    UnionShape,
    VoidShape,
    record,
    union,
)
from .values import OpenIntEnum, Some, Variant

__all__ = [
    "ArrayDescriptor",
    "ArrayShape",
    "Bits",
    "BoolDescriptor",
    "BoolShape",
    "Descriptor",
    "EnumDescriptor",
    "EnumShape",
    "FieldShape",
    "FloatDescriptor",
    "FloatShape",
    "IntDescriptor",
    "IntShape",
    "InvalidTag",
    "InvalidValue",
    "Length",
    "OpenEnumDescriptor",
    "OpenIntEnum",
    "OptionalDescriptor",
    "OptionalShape",
    "OutOfRange",
    "PackingError",
    "RecordDescriptor",
    "RecordShape",
    "Shape",
    "Some",
    "Struct",
    "TaggedUnion",
    "UnionDescriptor",
    "UnionShape",
    "UnknownField",
    "UnsupportedShape",
    "Variant",
    "VoidDescriptor",
    "VoidShape",
    "WidthOverflow",
    "WrongVariant",
    "build_descriptor",
    "clear_cache",
    "get_field",
    "record",
    "set_field",
    "shape_from_type",
    "sint",
    "uint",
    "union",
]
