"""Python code generator for radixpack schemas."""

import keyword

from jinja2 import Environment, PackageLoader

from radixpack.packing.types import BoolShape, FloatShape, IntShape, VoidShape

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

env = Environment(
    loader=PackageLoader("radixpack.schema", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)

template = env.get_template("python.py.j2")


def _map_primitive(t: SchemaType) -> str:
    shape = primitive(t)
    if isinstance(shape, BoolShape):
        return "bool"
    if isinstance(shape, VoidShape):
        return "None"
    if isinstance(shape, FloatShape):
        return f"Annotated[float, Bits({shape.bits})]"
    if isinstance(shape, IntShape):
        signed = ", signed=True" if shape.signed else ""
        return f"Annotated[int, Bits({shape.bits}{signed})]"
    raise ValueError(f"Unknown primitive type: {t.name}")


def _map_type(t: SchemaType) -> str:
    """Map a schema type to the Python annotation that packs the same way."""
    annotation = _map_primitive(t) if is_primitive(t) else t.name
    nullable = annotation == "None"
    for suffix in t.suffixes:
        if suffix.kind == SuffixKind.OPTIONAL:
            annotation = f"Some[{annotation}] | None" if nullable else f"{annotation} | None"
            nullable = True
        else:
            annotation = f"Annotated[list[{annotation}], Length({suffix.length})]"
            nullable = False
    return annotation


# names the generated module binds at top level or uses in annotations
RESERVED_DECLARATION_NAMES = {
    "Annotated",
    "Bits",
    "IntEnum",
    "Length",
    "MAX_WIDTH",
    "OpenIntEnum",
    "Some",
    "Struct",
    "TaggedUnion",
    "dataclass",
    "float",
    "int",
    "list",
    "nonmember",
}

# Struct methods a dataclass field would shadow on instances
RESERVED_STRUCT_MEMBERS = {"descriptor", "get_field", "pack", "set_field", "unpack"}


def _check_name(name: str, what: str) -> None:
    if keyword.iskeyword(name):
        raise ValueError(f"{what} is a Python keyword")
    if name.startswith("_"):
        raise ValueError(f"{what} starts with an underscore")


def _check_identifiers(
    enums: list[SchemaEnum],
    structs: list[SchemaStruct],
    unions: list[SchemaUnion],
) -> None:
    """Reject names that would not round-trip through the generated classes."""
    for decl in [*enums, *structs, *unions]:
        if keyword.iskeyword(decl.name):
            raise ValueError(f"{decl.name} is a Python keyword")
        if decl.name in RESERVED_DECLARATION_NAMES:
            raise ValueError(f"{decl.name} clashes with a name the generated module uses")

    for enum in enums:
        for value in enum.values:
            _check_name(value.name, f"{enum.name}.{value.name}")
            if enum.is_open and value.name == "radixpack_type":
                raise ValueError(f"{enum.name}.{value.name} clashes with the backing type attribute")

    for struct in structs:
        for member in struct.members:
            _check_name(member.name, f"{struct.name}.{member.name}")
            if member.name in RESERVED_STRUCT_MEMBERS:
                raise ValueError(f"{struct.name}.{member.name} shadows Struct.{member.name}")

    for union in unions:
        for member in union.members:
            _check_name(member.name, f"{union.name}.{member.name}")


def _imports(
    enums: list[SchemaEnum],
    structs: list[SchemaStruct],
    unions: list[SchemaUnion],
) -> dict[str, list[str]]:
    """Collect the names the generated module needs, per source module."""
    annotations = [_map_type(m.type) for c in [*structs, *unions] for m in c.members]
    uses = " ".join(annotations)

    enum_names = []
    if any(not e.is_open for e in enums):
        enum_names.append("IntEnum")
    if any(e.is_open for e in enums):
        enum_names.append("nonmember")

    runtime_names = [
        name
        for name, used in [
            ("Bits", "Bits(" in uses),
            ("Length", "Length(" in uses),
            ("OpenIntEnum", any(e.is_open for e in enums)),
            ("Some", "Some[" in uses),
            ("Struct", bool(structs)),
            ("TaggedUnion", bool(unions)),
        ]
        if used
    ]

    return {
        "dataclasses": ["dataclass"] if structs else [],
        "enum": enum_names,
        "typing": ["Annotated"] if "Annotated[" in uses else [],
        "runtime": runtime_names,
    }


def render(
    enums: list[SchemaEnum],
    structs: list[SchemaStruct],
    unions: list[SchemaUnion],
    options: list[SchemaOption],
    runtime_import: str = "radixpack.packing",
) -> str:
    """Render a schema to Python source code.

    Declarations are emitted dependencies first, so the module needs no
    forward references.
    """
    _check_identifiers(enums, structs, unions)

    by_name: dict[str, tuple[str, SchemaEnum | SchemaStruct | SchemaUnion]] = {}
    by_name.update({e.name: ("enum", e) for e in enums})
    by_name.update({s.name: ("struct", s) for s in structs})
    by_name.update({u.name: ("union", u) for u in unions})
    declarations = [by_name[name] for name in declaration_order(enums, structs, unions)]

    return template.render(
        declarations=declarations,
        imports=_imports(enums, structs, unions),
        max_width=max_width_option(options),
        map_type=_map_type,
        runtime_import=runtime_import,
        BLANK_LINE="",
    )
