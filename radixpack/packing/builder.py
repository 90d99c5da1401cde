"""Building descriptors from shapes, and field access on packed codes."""

from functools import lru_cache
from typing import Any

from structlog import get_logger

from .annotations import shape_from_type
from .descriptors import (
    ArrayDescriptor,
    BoolDescriptor,
    Descriptor,
    EnumDescriptor,
    FieldSelector,
    FloatDescriptor,
    IntDescriptor,
    OpenEnumDescriptor,
    OptionalDescriptor,
    RecordDescriptor,
    UnionDescriptor,
    VoidDescriptor,
)
from .errors import UnsupportedShape, WidthOverflow
from .types import (
    ArrayShape,
    BoolShape,
    EnumShape,
    FloatShape,
    IntShape,
    OptionalShape,
    RecordShape,
    Shape,
    UnionShape,
    VoidShape,
)

logger = get_logger()


def build_descriptor(shape: Any, *, max_width: int | None = None) -> Descriptor[Any]:
    """Build the descriptor for a shape or a type annotation.

    Descriptors are cached per shape, building the same shape twice returns
    the same descriptor.

    Args:
        shape: A shape object (see ``radixpack.packing.types``) or a type
            annotation (see ``radixpack.packing.annotations``).
        max_width: If given, fail instead of building a descriptor whose
            packed width exceeds this many bits.

    Raises:
        UnsupportedShape: if the shape is outside the supported set.
        WidthOverflow: if the packed width exceeds ``max_width``.
    """
    try:
        hash(shape)
    except TypeError as e:
        raise UnsupportedShape(f"unsupported shape: {shape!r}") from e
    descriptor = _cached_descriptor(shape)
    if max_width is not None and descriptor.packed_width > max_width:
        raise WidthOverflow(
            f"{_shape_name(shape)} needs {descriptor.packed_width} bits, more than {max_width}"
        )
    return descriptor


@lru_cache(maxsize=None)
def _cached_descriptor(shape: Any) -> Descriptor[Any]:
    descriptor = _build(shape_from_type(shape))
    logger.debug(
        "descriptor built",
        shape=_shape_name(shape),
        kind=type(descriptor).__name__,
        possibilities=descriptor.possibilities,
        packed_width=descriptor.packed_width,
    )
    return descriptor


def clear_cache() -> None:
    """Drop every cached descriptor."""
    _cached_descriptor.cache_clear()


def _shape_name(shape: Any) -> str:
    name = getattr(shape, "name", None) or getattr(shape, "__name__", None)
    return name if isinstance(name, str) else type(shape).__name__


def _build(shape: Shape) -> Descriptor[Any]:
    if isinstance(shape, IntShape):
        return IntDescriptor(shape.bits, shape.signed)
    if isinstance(shape, FloatShape):
        return FloatDescriptor(shape.bits)
    if isinstance(shape, BoolShape):
        return BoolDescriptor()
    if isinstance(shape, VoidShape):
        return VoidDescriptor()
    if isinstance(shape, EnumShape):
        if shape.exhaustive:
            return EnumDescriptor(shape.enum)
        if shape.backing is None:
            raise UnsupportedShape(f"non-exhaustive enum {shape.enum.__name__} has no backing type")
        return OpenEnumDescriptor(shape.enum, _cached_descriptor(shape.backing))
    if isinstance(shape, OptionalShape):
        return OptionalDescriptor(_cached_descriptor(shape.child))
    if isinstance(shape, ArrayShape):
        return ArrayDescriptor(_cached_descriptor(shape.child), shape.length, shape.factory)
    if isinstance(shape, RecordShape):
        return RecordDescriptor(
            [(field.name, _cached_descriptor(field.shape)) for field in shape.fields],
            shape.factory,
        )
    if isinstance(shape, UnionShape):
        return UnionDescriptor(
            [(variant.name, _cached_descriptor(variant.shape)) for variant in shape.variants],
            shape.factory,
        )
    raise UnsupportedShape(f"unsupported shape: {shape!r}")


def _field_access(descriptor: Descriptor[Any]) -> RecordDescriptor | UnionDescriptor:
    if not isinstance(descriptor, (RecordDescriptor, UnionDescriptor)):
        raise TypeError(f"field access needs a record or union descriptor, got {descriptor!r}")
    return descriptor


def get_field(descriptor: Descriptor[Any], code: int, selector: FieldSelector) -> Any:
    """Decode one field of a packed record, or the payload of a packed union.

    For records ``selector`` is a field name or position; for unions it is the
    expected variant tag and ``WrongVariant`` is raised if the code holds
    another variant.
    """
    return _field_access(descriptor).get_field(code, selector)  # type: ignore[arg-type]


def set_field(descriptor: Descriptor[Any], code: int, selector: FieldSelector, value: Any) -> int:
    """Return ``code`` with one field (or the union variant) replaced by ``value``."""
    return _field_access(descriptor).set_field(code, selector, value)  # type: ignore[arg-type]
