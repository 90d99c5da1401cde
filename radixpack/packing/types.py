"""Runtime shape descriptions for radixpack.

These dataclasses describe the structure of a value space at runtime. They are
the input of ``build_descriptor`` and can be built by hand, resolved from a
schema file, or derived from Python type annotations.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias


@dataclass(frozen=True, slots=True)
class IntShape:
    """A fixed-width integer, every bit pattern is a legal value."""

    bits: int
    signed: bool = False


@dataclass(frozen=True, slots=True)
class FloatShape:
    """An IEEE float of 16, 32 or 64 bits, packed as its raw bit pattern."""

    bits: int


@dataclass(frozen=True, slots=True)
class BoolShape:
    """A boolean."""


@dataclass(frozen=True, slots=True)
class VoidShape:
    """The shape with exactly one value, ``None``."""


@dataclass(frozen=True, slots=True)
class EnumShape:
    """An enumeration.

    Exhaustive enums pack members by declaration ordinal. Non-exhaustive enums
    fall back to the raw integer of ``backing`` so unknown values survive.
    """

    enum: type[Enum]
    exhaustive: bool = True
    backing: IntShape | None = None


@dataclass(frozen=True, slots=True)
class OptionalShape:
    """Either ``None`` or a value of ``child``."""

    child: "Shape"


@dataclass(frozen=True, slots=True)
class ArrayShape:
    """Exactly ``length`` values of ``child``."""

    child: "Shape"
    length: int
    factory: Callable[[list[Any]], Any] = list


@dataclass(frozen=True, slots=True)
class FieldShape:
    """A named member of a record or a tagged variant of a union."""

    name: str
    shape: "Shape"


@dataclass(frozen=True, slots=True)
class RecordShape:
    """An ordered product of named fields.

    ``factory`` is called with the decoded fields as keyword arguments, ``None``
    means values are plain dicts.
    """

    fields: tuple[FieldShape, ...]
    factory: Callable[..., Any] | None = None
    name: str | None = None


@dataclass(frozen=True, slots=True)
class UnionShape:
    """An ordered sum of tagged variants.

    ``factory`` is called as ``factory(tag, value)``, ``None`` means values are
    ``Variant`` instances.
    """

    variants: tuple[FieldShape, ...]
    factory: Callable[[str, Any], Any] | None = None
    name: str | None = None


Shape: TypeAlias = (
    IntShape
    | FloatShape
    | BoolShape
    | VoidShape
    | EnumShape
    | OptionalShape
    | ArrayShape
    | RecordShape
    | UnionShape
)

SHAPE_TYPES = (
    IntShape,
    FloatShape,
    BoolShape,
    VoidShape,
    EnumShape,
    OptionalShape,
    ArrayShape,
    RecordShape,
    UnionShape,
)


def record(*fields: tuple[str, Shape], factory: Callable[..., Any] | None = None) -> RecordShape:
    """Shortcut to build a RecordShape from ``(name, shape)`` pairs."""
    return RecordShape(tuple(FieldShape(name, shape) for name, shape in fields), factory)


def union(*variants: tuple[str, Shape], factory: Callable[[str, Any], Any] | None = None) -> UnionShape:
    """Shortcut to build a UnionShape from ``(tag, shape)`` pairs."""
    return UnionShape(tuple(FieldShape(tag, shape) for tag, shape in variants), factory)


_INT_NAME = re.compile(r"(u?)int(\d+)")


def primitive_shape(name: str) -> Shape | None:
    """Return the shape of a primitive type name, or None if it is not one.

    Primitive names are ``bool``, ``void``, ``uintN``, ``intN`` and
    ``float16``/``float32``/``float64``.
    """
    if name == "bool":
        return BoolShape()
    if name == "void":
        return VoidShape()
    if name in ("float16", "float32", "float64"):
        return FloatShape(int(name[5:]))
    match = _INT_NAME.fullmatch(name)
    if match:
        return IntShape(int(match.group(2)), signed=not match.group(1))
    return None
