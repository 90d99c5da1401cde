"""Shapes from Python type annotations.

Plain ``int`` and ``float`` carry no width, so integer and float annotations
need a ``Bits`` marker; fixed arrays need a ``Length`` marker:

    @dataclass
    class Reading(Struct):
        channel: Annotated[int, Bits(3)]
        offset: Annotated[int, Bits(5, signed=True)]
        flags: Annotated[list[bool], Length(4)]
        status: Status | None

The aliases below cover the usual fixed widths.
"""

import dataclasses
import inspect
from dataclasses import dataclass
from enum import Enum
from types import NoneType, UnionType
from typing import Annotated, Any, Union, get_args, get_origin, get_type_hints

from structlog import get_logger

from .errors import UnsupportedShape
from .types import (
    SHAPE_TYPES,
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
    primitive_shape,
)
from .values import OpenIntEnum, Some, Variant

logger = get_logger()


@dataclass(frozen=True, slots=True)
class Bits:
    """Width marker for ``Annotated[int, ...]``, ``Annotated[float, ...]`` and open enums."""

    bits: int
    signed: bool = False


@dataclass(frozen=True, slots=True)
class Length:
    """Length marker for fixed arrays, ``Annotated[list[T], Length(n)]``."""

    length: int


def uint(bits: int) -> Any:
    """Annotation for an unsigned integer of ``bits`` bits."""
    return Annotated[int, Bits(bits)]


def sint(bits: int) -> Any:
    """Annotation for a two's complement signed integer of ``bits`` bits."""
    return Annotated[int, Bits(bits, signed=True)]


uint8 = uint(8)
uint16 = uint(16)
uint32 = uint(32)
uint64 = uint(64)
int8 = sint(8)
int16 = sint(16)
int32 = sint(32)
int64 = sint(64)
float16 = Annotated[float, Bits(16)]
float32 = Annotated[float, Bits(32)]
float64 = Annotated[float, Bits(64)]


def shape_from_type(type_: Any) -> Shape:
    """Build the shape described by a type annotation.

    Shape objects are returned unchanged, so callers can mix both styles.

    Raises:
        UnsupportedShape: if the annotation is outside the supported set.
    """
    return _ShapeResolver().resolve(type_)


def _is_class(type_: Any, base: type) -> bool:
    return isinstance(type_, type) and issubclass(type_, base)


def _is_namedtuple(type_: Any) -> bool:
    return _is_class(type_, tuple) and hasattr(type_, "_fields")


def _pretty(type_: Any) -> str:
    return getattr(type_, "__name__", None) or repr(type_)


class _ShapeResolver:
    """Resolve annotations recursively, rejecting recursive declarations."""

    def __init__(self) -> None:
        self._resolving: list[type] = []

    def resolve(self, type_: Any) -> Shape:
        if isinstance(type_, SHAPE_TYPES):
            return type_
        if type_ is None or type_ is NoneType:
            return VoidShape()
        if type_ is bool:
            return BoolShape()

        origin = get_origin(type_)
        if origin is Annotated:
            return self._resolve_annotated(type_)
        if origin is Union or origin is UnionType:
            return self._resolve_optional(type_)
        if origin is tuple:
            return self._resolve_tuple(type_)
        if origin is Some or type_ is Some:
            raise UnsupportedShape("Some[T] is only valid inside `Some[T] | None`")

        if _is_class(type_, Enum):
            return self._resolve_enum(type_, None)
        if _is_class(type_, Variant) and type_ is not Variant:
            return self._nested(type_, self._resolve_tagged_union)
        if dataclasses.is_dataclass(type_) and isinstance(type_, type):
            return self._nested(type_, self._resolve_dataclass)
        if _is_namedtuple(type_):
            return self._nested(type_, self._resolve_namedtuple)
        if type_ is int or type_ is float:
            raise UnsupportedShape(f"{type_.__name__} needs a width, use Annotated[{type_.__name__}, Bits(n)]")

        raise UnsupportedShape(f"unsupported type: {_pretty(type_)}")

    def _nested(self, type_: type, resolve_fn: Any) -> Shape:
        if type_ in self._resolving:
            raise UnsupportedShape(f"recursive type: {type_.__name__}")
        self._resolving.append(type_)
        try:
            return resolve_fn(type_)
        finally:
            self._resolving.pop()

    def _resolve_annotated(self, type_: Any) -> Shape:
        base, *metadata = get_args(type_)
        bits = next((m for m in metadata if isinstance(m, Bits)), None)
        length = next((m for m in metadata if isinstance(m, Length)), None)

        if length is not None:
            return self._resolve_array(base, length.length)
        if bits is not None:
            if base is int:
                return IntShape(bits.bits, bits.signed)
            if base is float:
                if bits.signed:
                    raise UnsupportedShape("floats are always signed, drop signed=True")
                return FloatShape(bits.bits)
            if _is_class(base, Enum):
                return self._resolve_enum(base, IntShape(bits.bits, bits.signed))
            raise UnsupportedShape(f"Bits does not apply to {_pretty(base)}")
        # unrelated metadata is ignored
        return self.resolve(base)

    def _resolve_optional(self, type_: Any) -> Shape:
        args = get_args(type_)
        if len(args) != 2 or NoneType not in args:
            raise UnsupportedShape(
                f"only `T | None` unions are supported, got {type_!r}; use TaggedUnion for sums"
            )
        (child,) = (arg for arg in args if arg is not NoneType)
        if get_origin(child) is Some:
            (inner,) = get_args(child)
            shape = self.resolve(inner)
            if not isinstance(shape, (OptionalShape, VoidShape)):
                raise UnsupportedShape(f"{_pretty(inner)} cannot be None, use `{_pretty(inner)} | None`")
            return OptionalShape(shape)
        shape = self.resolve(child)
        if isinstance(shape, (OptionalShape, VoidShape)):
            raise UnsupportedShape(f"{child!r} can already be None, use `Some[...] | None`")
        return OptionalShape(shape)

    def _resolve_tuple(self, type_: Any) -> Shape:
        args = get_args(type_)
        if not args or (len(args) == 2 and args[1] is Ellipsis):
            raise UnsupportedShape(f"{type_!r} has no fixed length, use Annotated[..., Length(n)]")
        if any(arg != args[0] for arg in args):
            raise UnsupportedShape(f"{type_!r} is not homogeneous, use a NamedTuple")
        return ArrayShape(self.resolve(args[0]), len(args), tuple)

    def _resolve_array(self, base: Any, length: int) -> Shape:
        origin = get_origin(base)
        args = get_args(base)
        if origin is list and len(args) == 1:
            return ArrayShape(self.resolve(args[0]), length, list)
        if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
            return ArrayShape(self.resolve(args[0]), length, tuple)
        raise UnsupportedShape(f"Length applies to list[T] or tuple[T, ...], not {_pretty(base)}")

    def _resolve_enum(self, enum: type[Enum], backing: IntShape | None) -> Shape:
        if not _is_class(enum, OpenIntEnum):
            if backing is not None:
                return EnumShape(enum, exhaustive=False, backing=backing)
            return EnumShape(enum)

        if backing is None:
            type_name = getattr(enum, "radixpack_type", None)
            shape = primitive_shape(type_name) if isinstance(type_name, str) else None
            if not isinstance(shape, IntShape):
                raise UnsupportedShape(
                    f"open enum {enum.__name__} needs an integer radixpack_type, got {type_name!r}"
                )
            backing = shape
        return EnumShape(enum, exhaustive=False, backing=backing)

    def _resolve_dataclass(self, type_: type) -> Shape:
        hints = get_type_hints(type_, include_extras=True)
        fields = []
        for field in dataclasses.fields(type_):
            if not field.init:
                raise UnsupportedShape(f"{type_.__name__}.{field.name} is not an __init__ field")
            fields.append(FieldShape(field.name, self.resolve(hints[field.name])))
        return RecordShape(tuple(fields), type_, type_.__name__)

    def _resolve_namedtuple(self, type_: type) -> Shape:
        hints = get_type_hints(type_, include_extras=True)
        fields = []
        for name in type_._fields:  # type: ignore[attr-defined]
            if name not in hints:
                raise UnsupportedShape(f"{type_.__name__}.{name} has no annotation")
            fields.append(FieldShape(name, self.resolve(hints[name])))
        return RecordShape(tuple(fields), type_, type_.__name__)

    def _resolve_tagged_union(self, type_: type) -> Shape:
        hints = get_type_hints(type_, include_extras=True)
        tags = [tag for tag in inspect.get_annotations(type_) if not tag.startswith("_")]
        if not tags:
            raise UnsupportedShape(f"{type_.__name__} declares no variants")
        variants = tuple(FieldShape(tag, self.resolve(hints[tag])) for tag in tags)
        logger.debug("tagged union resolved", name=type_.__name__, variants=len(variants))
        return UnionShape(variants, type_, type_.__name__)
