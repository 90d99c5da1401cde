"""Shape resolution and size reports for schema declarations."""

from dataclasses import dataclass
from enum import Enum, IntEnum, StrEnum, auto
from functools import lru_cache

from radixpack.packing.builder import build_descriptor
from radixpack.packing.types import (
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
)
from radixpack.packing.values import OpenIntEnum

from .parser import declaration_order
from .types import (
    SchemaEnum,
    SchemaOption,
    SchemaStruct,
    SchemaType,
    SchemaUnion,
    SuffixKind,
    is_primitive,
    max_width_option,
    primitive,
)


class DeclarationKind(StrEnum):
    """Kind of a schema declaration."""

    ENUM = auto()
    STRUCT = auto()
    UNION = auto()


@dataclass(frozen=True)
class ShapeInfo:
    """Packing information for one declaration."""

    name: str
    kind: DeclarationKind
    possibilities: int
    packed_width: int  # bits
    aligned_size: int  # bytes in a conventional byte-aligned layout

    @property
    def aligned_width(self) -> int:
        return self.aligned_size * 8

    @property
    def saved_bits(self) -> int:
        return self.aligned_width - self.packed_width


@dataclass(frozen=True)
class SchemaShapeInfo:
    """Packing information for an entire schema."""

    declarations: dict[str, ShapeInfo]
    max_width: int | None  # None means no limit

    @property
    def widest(self) -> ShapeInfo | None:
        if not self.declarations:
            return None
        return max(self.declarations.values(), key=lambda info: info.packed_width)

    @property
    def overflowing(self) -> list[str]:
        """Names of the declarations wider than ``max_width``."""
        if self.max_width is None:
            return []
        return [
            name for name, info in self.declarations.items() if info.packed_width > self.max_width
        ]


def _int_size(bits: int) -> int:
    """Smallest power-of-two byte count holding ``bits`` bits."""
    if bits == 0:
        return 0
    size = 1
    while size * 8 < bits:
        size *= 2
    return size


def aligned_size(shape: Shape) -> int:
    """Size in bytes a shape takes when every part is stored byte-aligned.

    Integers round up to 1, 2, 4 or 8 bytes, bools take a byte, enums take
    their underlying integer, optionals add a presence byte and unions a tag.
    """
    if isinstance(shape, IntShape):
        return _int_size(shape.bits)
    if isinstance(shape, FloatShape):
        return shape.bits // 8
    if isinstance(shape, BoolShape):
        return 1
    if isinstance(shape, VoidShape):
        return 0
    if isinstance(shape, EnumShape):
        if shape.backing is not None:
            return aligned_size(shape.backing)
        return max(1, _int_size((len(shape.enum) - 1).bit_length()))
    if isinstance(shape, OptionalShape):
        return 1 + aligned_size(shape.child)
    if isinstance(shape, ArrayShape):
        return shape.length * aligned_size(shape.child)
    if isinstance(shape, RecordShape):
        return sum(aligned_size(field.shape) for field in shape.fields)
    if isinstance(shape, UnionShape):
        tag_size = max(1, _int_size((len(shape.variants) - 1).bit_length()))
        return tag_size + max(aligned_size(variant.shape) for variant in shape.variants)
    raise ValueError(f"Unknown shape: {shape!r}")


@lru_cache(maxsize=None)
def _enum_class(name: str, is_open: bool, members: tuple[tuple[str, int], ...]) -> type[Enum]:
    if is_open:
        return OpenIntEnum(name, members)  # type: ignore[return-value]
    return IntEnum(name, members)  # type: ignore[return-value]


class ShapeResolver:
    """Turn schema declarations into packing shapes."""

    def __init__(
        self,
        enums: list[SchemaEnum],
        structs: list[SchemaStruct],
        unions: list[SchemaUnion],
    ):
        self.enums = {e.name: e for e in enums}
        self.structs = {s.name: s for s in structs}
        self.unions = {u.name: u for u in unions}
        self.order = declaration_order(enums, structs, unions)
        self._cache: dict[str, Shape] = {}

    def kind_of(self, name: str) -> DeclarationKind:
        if name in self.enums:
            return DeclarationKind.ENUM
        if name in self.structs:
            return DeclarationKind.STRUCT
        if name in self.unions:
            return DeclarationKind.UNION
        raise ValueError(f"Unknown type: {name}")

    def enum_class(self, enum: SchemaEnum) -> type[Enum]:
        """Return the Python enum for a declaration.

        Equal declarations share one class, so their shapes compare equal and
        reuse cached descriptors.
        """
        members = tuple((value.name, value.value) for value in enum.values)
        return _enum_class(enum.name, enum.is_open, members)

    def resolve_type(self, t: SchemaType) -> Shape:
        """Resolve a type reference, applying its suffixes left to right."""
        shape = primitive(t) if is_primitive(t) else self.resolve_declaration(t.name)
        for suffix in t.suffixes:
            if suffix.kind == SuffixKind.OPTIONAL:
                shape = OptionalShape(shape)
            else:
                shape = ArrayShape(shape, suffix.length or 0)
        return shape

    def resolve_declaration(self, name: str) -> Shape:
        """Resolve a declaration (with caching)."""
        if name in self._cache:
            return self._cache[name]

        shape: Shape
        if name in self.enums:
            enum = self.enums[name]
            backing = primitive(enum.type)
            shape = EnumShape(self.enum_class(enum), exhaustive=not enum.is_open, backing=backing)  # type: ignore[arg-type]
        elif name in self.structs:
            struct = self.structs[name]
            fields = tuple(FieldShape(m.name, self.resolve_type(m.type)) for m in struct.members)
            shape = RecordShape(fields, name=name)
        elif name in self.unions:
            union = self.unions[name]
            variants = tuple(FieldShape(m.name, self.resolve_type(m.type)) for m in union.members)
            shape = UnionShape(variants, name=name)
        else:
            raise ValueError(f"Unknown type: {name}")

        self._cache[name] = shape
        return shape

    def resolve_all(self) -> dict[str, Shape]:
        return {name: self.resolve_declaration(name) for name in self.order}


def resolve_shapes(
    enums: list[SchemaEnum],
    structs: list[SchemaStruct],
    unions: list[SchemaUnion],
) -> dict[str, Shape]:
    """Resolve every declaration to its shape, dependencies first.

    Enums become ``IntEnum`` (or ``OpenIntEnum`` for ``@open``) classes,
    structs pack dicts and unions pack ``Variant`` values.
    """
    return ShapeResolver(enums, structs, unions).resolve_all()


def calculate_shapes(
    enums: list[SchemaEnum],
    structs: list[SchemaStruct],
    unions: list[SchemaUnion],
    options: list[SchemaOption],
    max_width: int | None = None,
) -> SchemaShapeInfo:
    """Calculate packing information for a schema.

    ``max_width`` overrides the schema's ``maxWidth`` option.
    """
    resolver = ShapeResolver(enums, structs, unions)
    infos: dict[str, ShapeInfo] = {}
    for name, shape in resolver.resolve_all().items():
        descriptor = build_descriptor(shape)
        infos[name] = ShapeInfo(
            name=name,
            kind=resolver.kind_of(name),
            possibilities=descriptor.possibilities,
            packed_width=descriptor.packed_width,
            aligned_size=aligned_size(shape),
        )

    limit = max_width if max_width is not None else max_width_option(options)
    return SchemaShapeInfo(declarations=infos, max_width=limit)
