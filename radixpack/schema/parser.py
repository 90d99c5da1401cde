"""Schema parser using Lark."""

import os
from dataclasses import dataclass
from typing import Any, TypeVar

from lark import Lark, Token
from lark.visitors import Transformer
from structlog import get_logger

from radixpack.packing.types import IntShape, primitive_shape

from .types import (
    KNOWN_ANNOTATIONS,
    KNOWN_OPTIONS,
    SchemaAnnotation,
    SchemaEnum,
    SchemaEnumValue,
    SchemaMember,
    SchemaOption,
    SchemaStruct,
    SchemaType,
    SchemaUnion,
    SuffixKind,
    TypeSuffix,
)

logger = get_logger()

_g_parser: Lark | None = None

Declaration = SchemaEnum | SchemaStruct | SchemaUnion


class ValidationError(RuntimeError):
    """Raised when schema validation fails."""


@dataclass
class _Annotations:
    value: list[SchemaAnnotation]


@dataclass
class _Name:
    value: str


@dataclass
class _Value:
    value: int | str


@dataclass
class _Number:
    value: int


@dataclass
class _Options:
    options: list[SchemaOption]


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise RuntimeError(f"Found more than one {class_type}")

    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


TMany = TypeVar("TMany")


def _find_many(args: list[Any], class_type: type[TMany]) -> list[TMany]:
    return _filter(args, class_type)


class TreeTransformer(Transformer):
    """Transform parse tree into schema types."""

    def start(self, args: list[Any]) -> list[Any]:
        return list(args)

    def annotation(self, args: list[Any]) -> SchemaAnnotation:
        return SchemaAnnotation(name=_find_one(args, _Name))

    def annotations(self, args: list[Any]) -> _Annotations:
        return _Annotations(value=_find_many(args, SchemaAnnotation))

    def array(self, args: list[Any]) -> TypeSuffix:
        return TypeSuffix(kind=SuffixKind.ARRAY, length=_find_one(args, _Number))

    def enum(self, args: list[Any]) -> SchemaEnum:
        name, underlying = _find_many(args, _Name)
        return SchemaEnum(
            name=name.value,
            type=SchemaType(name=underlying.value, suffixes=[]),
            values=_find_many(args, SchemaEnumValue),
            annotations=_find_one(args, _Annotations),
        )

    def enum_value(self, args: list[Any]) -> SchemaEnumValue:
        return SchemaEnumValue(name=_find_one(args, _Name), value=_find_one(args, _Number))

    def member(self, args: list[Any]) -> SchemaMember:
        return SchemaMember(name=_find_one(args, _Name), type=_find_one(args, SchemaType))

    def name(self, args: list[Any]) -> _Name:
        return _Name(value=str(args[0]))

    def number(self, args: list[Any]) -> _Number:
        return _Number(value=int(args[0]))

    def optional(self, _args: list[Any]) -> TypeSuffix:
        return TypeSuffix(kind=SuffixKind.OPTIONAL)

    def option(self, args: list[Any]) -> SchemaOption:
        return SchemaOption(name=_find_one(args, _Name), value=_find_one(args, _Value))

    def options(self, args: list[Any]) -> _Options:
        return _Options(options=_find_many(args, SchemaOption))

    def struct(self, args: list[Any]) -> SchemaStruct:
        return SchemaStruct(
            name=_find_one(args, _Name),
            members=_find_many(args, SchemaMember),
            annotations=_find_one(args, _Annotations),
        )

    def type(self, args: list[Any]) -> SchemaType:
        return SchemaType(name=_find_one(args, _Name), suffixes=_find_many(args, TypeSuffix))

    def union(self, args: list[Any]) -> SchemaUnion:
        return SchemaUnion(
            name=_find_one(args, _Name),
            members=_find_many(args, SchemaMember),
            annotations=_find_one(args, _Annotations),
        )

    def value(self, args: list[Any]) -> _Value:
        token: Token = args[0]
        if token.type == "SIGNED_INT":
            return _Value(value=int(token))
        return _Value(value=str(token))


def _check_unique(names: list[str], what: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ValidationError(f"Duplicate {what}: {name}")
        seen.add(name)


def _validate_annotations(declaration: Declaration) -> None:
    for annotation in declaration.annotations:
        kinds = KNOWN_ANNOTATIONS.get(annotation.name)
        if kinds is None:
            raise ValidationError(f"Unknown annotation @{annotation.name} on {declaration.name}")
        if not isinstance(declaration, kinds):
            raise ValidationError(f"@{annotation.name} does not apply to {declaration.name}")


def _validate_enum(enum: SchemaEnum) -> None:
    shape = primitive_shape(enum.type.name)
    if not isinstance(shape, IntShape) or (shape.signed and shape.bits == 0):
        raise ValidationError(f"Enum {enum.name} needs an integer type, got {enum.type.name}")
    if not enum.values:
        raise ValidationError(f"Enum {enum.name} has no values")

    _check_unique([v.name for v in enum.values], f"value name in enum {enum.name}")

    if shape.signed:
        low, high = -(1 << (shape.bits - 1)), (1 << (shape.bits - 1)) - 1
    else:
        low, high = 0, (1 << shape.bits) - 1

    seen: dict[int, str] = {}
    for value in enum.values:
        if not low <= value.value <= high:
            raise ValidationError(
                f"{enum.name}.{value.name} = {value.value} does not fit in {enum.type.name}"
            )
        if value.value in seen:
            raise ValidationError(
                f"{enum.name}.{value.name} repeats the value of {enum.name}.{seen[value.value]}"
            )
        seen[value.value] = value.name


def _validate_type(owner: str, member: SchemaMember, declared: set[str]) -> None:
    t = member.type
    base = primitive_shape(t.name)
    if base is None and t.name not in declared:
        raise ValidationError(f"{owner}.{member.name} references unknown type {t.name}")
    if isinstance(base, IntShape) and base.signed and base.bits == 0:
        raise ValidationError(f"{owner}.{member.name}: int0 has no sign bit, use uint0")

    for suffix in t.suffixes:
        if suffix.kind == SuffixKind.ARRAY and (suffix.length is None or suffix.length < 0):
            raise ValidationError(f"{owner}.{member.name} has a negative array length")


def _validate_options(options: list[SchemaOption]) -> None:
    _check_unique([option.name for option in options], "option")
    for option in options:
        expected = KNOWN_OPTIONS.get(option.name)
        if expected is None:
            raise ValidationError(f"Unknown option: {option.name}")
        if not isinstance(option.value, expected):
            raise ValidationError(f"Option {option.name} expects {expected.__name__}, got {option.value!r}")
        if isinstance(option.value, int) and option.value < 0:
            raise ValidationError(f"Option {option.name} must not be negative")


def declaration_order(
    enums: list[SchemaEnum],
    structs: list[SchemaStruct],
    unions: list[SchemaUnion],
) -> list[str]:
    """Return declaration names so that every type comes after the types it uses.

    Raises:
        ValidationError: if declarations reference each other recursively.
    """
    composites: dict[str, SchemaStruct | SchemaUnion] = {c.name: c for c in [*structs, *unions]}
    order = [enum.name for enum in enums]
    done = set(order)
    path: list[str] = []

    def visit(name: str) -> None:
        if name in done or name not in composites:
            return
        if name in path:
            cycle = " -> ".join([*path[path.index(name) :], name])
            raise ValidationError(f"Recursive declaration: {cycle}")
        path.append(name)
        for member in composites[name].members:
            visit(member.type.name)
        path.pop()
        done.add(name)
        order.append(name)

    for name in composites:
        visit(name)
    return order


def validate(
    enums: list[SchemaEnum],
    structs: list[SchemaStruct],
    unions: list[SchemaUnion],
    options: list[SchemaOption],
) -> None:
    """Validate a parsed schema."""
    declarations: list[Declaration] = [*enums, *structs, *unions]
    _check_unique([d.name for d in declarations], "declaration")
    for declaration in declarations:
        if primitive_shape(declaration.name) is not None:
            raise ValidationError(f"{declaration.name} is a primitive type name")
        _validate_annotations(declaration)

    for enum in enums:
        _validate_enum(enum)

    declared = {d.name for d in declarations}
    for composite in [*structs, *unions]:
        _check_unique([m.name for m in composite.members], f"member in {composite.name}")
        for member in composite.members:
            _validate_type(composite.name, member, declared)
    for union in unions:
        if not union.members:
            raise ValidationError(f"Union {union.name} has no variants")

    declaration_order(enums, structs, unions)
    _validate_options(options)


def parse(
    text: str,
) -> tuple[list[SchemaEnum], list[SchemaStruct], list[SchemaUnion], list[SchemaOption]]:
    """Parse and validate a schema definition."""
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/schema.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar, parser="lalr")

    tree = _g_parser.parse(text)
    items = TreeTransformer().transform(tree)

    enums = _find_many(items, SchemaEnum)
    structs = _find_many(items, SchemaStruct)
    unions = _find_many(items, SchemaUnion)
    options = [option for block in _find_many(items, _Options) for option in block.options]

    validate(enums, structs, unions, options)
    logger.debug(
        "schema parsed",
        enums=len(enums),
        structs=len(structs),
        unions=len(unions),
        options=len(options),
    )

    return (enums, structs, unions, options)
