"""Type definitions for schema parsing and code generation."""

from dataclasses import dataclass
from enum import StrEnum, auto

from dataclasses_json import DataClassJsonMixin

from radixpack.packing.types import Shape, primitive_shape


class SuffixKind(StrEnum):
    """Type suffixes, applied left to right."""

    OPTIONAL = auto()  # T?
    ARRAY = auto()  # T[N]


@dataclass
class TypeSuffix(DataClassJsonMixin):
    """Represents one ``?`` or ``[N]`` suffix of a type reference."""

    kind: SuffixKind
    length: int | None = None


@dataclass
class SchemaType(DataClassJsonMixin):
    """Represents a reference to a primitive or declared type, with its suffixes."""

    name: str
    suffixes: list[TypeSuffix]

    def __str__(self) -> str:
        text = self.name
        for suffix in self.suffixes:
            text += "?" if suffix.kind == SuffixKind.OPTIONAL else f"[{suffix.length}]"
        return text


@dataclass
class SchemaAnnotation(DataClassJsonMixin):
    """Represents an annotation such as ``@open``."""

    name: str


@dataclass
class SchemaEnumValue(DataClassJsonMixin):
    """Represents a single enum value."""

    name: str
    value: int


@dataclass
class SchemaEnum(DataClassJsonMixin):
    """Represents an enum declaration."""

    name: str
    type: SchemaType
    values: list[SchemaEnumValue]
    annotations: list[SchemaAnnotation]

    @property
    def is_open(self) -> bool:
        """True for non-exhaustive enums, which keep unknown raw values."""
        return any(annotation.name == "open" for annotation in self.annotations)


@dataclass
class SchemaMember(DataClassJsonMixin):
    """Represents a struct field or a union variant."""

    name: str
    type: SchemaType


@dataclass
class SchemaStruct(DataClassJsonMixin):
    """Represents a struct declaration."""

    name: str
    members: list[SchemaMember]
    annotations: list[SchemaAnnotation]


@dataclass
class SchemaUnion(DataClassJsonMixin):
    """Represents a tagged union declaration."""

    name: str
    members: list[SchemaMember]
    annotations: list[SchemaAnnotation]


@dataclass
class SchemaOption(DataClassJsonMixin):
    """Represents an entry of an ``options { ... }`` block."""

    name: str
    value: int | str


# option name -> expected value type
KNOWN_OPTIONS: dict[str, type] = {
    "maxWidth": int,
}

# annotation name -> declaration kinds it applies to
KNOWN_ANNOTATIONS: dict[str, tuple[type, ...]] = {
    "open": (SchemaEnum,),
}


def is_primitive(t: SchemaType | str) -> bool:
    """Check if a type reference names a primitive type."""
    name = t if isinstance(t, str) else t.name
    return primitive_shape(name) is not None


def primitive(t: SchemaType | str) -> Shape:
    """Return the shape of a primitive type name, ignoring suffixes."""
    name = t if isinstance(t, str) else t.name
    shape = primitive_shape(name)
    if shape is None:
        raise ValueError(f"Unknown primitive type: {name}")
    return shape


def options_dict(options: list[SchemaOption]) -> dict[str, int | str]:
    """Return the options as a name -> value dict."""
    return {option.name: option.value for option in options}


def max_width_option(options: list[SchemaOption]) -> int | None:
    """Return the ``maxWidth`` option, if the schema sets one."""
    value = options_dict(options).get("maxWidth")
    return value if isinstance(value, int) else None
