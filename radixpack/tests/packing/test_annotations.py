"""Tests for descriptors built from type annotations."""

# pylint: disable=redefined-outer-name,unused-variable,expression-not-assigned,singleton-comparison

from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto, nonmember
from typing import Annotated, NamedTuple, Optional

import pytest

from radixpack.packing import (
    ArrayShape,
    BoolShape,
    Bits,
    EnumShape,
    IntShape,
    Length,
    OpenIntEnum,
    OptionalShape,
    RecordDescriptor,
    Some,
    Struct,
    TaggedUnion,
    UnionDescriptor,
    UnsupportedShape,
    VoidShape,
    WrongVariant,
    build_descriptor,
    shape_from_type,
    sint,
    uint,
)
from radixpack.packing.annotations import float32, int8, uint8


class Quad(IntEnum):
    A = 0
    B = 1
    C = 2
    D = 3


class Five(Enum):
    A = auto()
    B = auto()
    C = auto()
    D = auto()
    E = auto()


class Status(OpenIntEnum):
    radixpack_type = nonmember("uint8")
    OK = 0
    ERROR = 1


class Untyped(OpenIntEnum):
    OK = 0


@dataclass
class Sample(Struct):
    a: Annotated[int, Bits(3, signed=True)]
    b: Quad
    c: Optional[uint(2)]


@dataclass
class Outer(Struct):
    inner: Sample
    flags: Annotated[list[bool], Length(3)]
    status: Status | None


class Event(TaggedUnion):
    a: uint(3) | None
    b: Five
    c: bool


class Command(TaggedUnion):
    stop: None
    move: sint(4)
    sample: Sample


class Pair(NamedTuple):
    x: uint8
    y: bool


@dataclass
class Node:
    value: bool
    next: "Node | None"


@dataclass
class WithDerived:
    x: bool
    y: bool = field(init=False, default=False)


def describe_primitive_annotations():
    def builds_integers(expect):
        expect(shape_from_type(uint(7))) == IntShape(7)
        expect(shape_from_type(sint(3))) == IntShape(3, signed=True)
        expect(build_descriptor(uint8).possibilities) == 256
        expect(build_descriptor(int8).pack(-1)) == 255

    def builds_floats(expect):
        expect(build_descriptor(float32).pack(1.5)) == 0x3FC00000

    def builds_bool_and_void(expect):
        expect(shape_from_type(bool)) == BoolShape()
        expect(build_descriptor(None).possibilities) == 1

    def requires_a_width_for_int(expect):
        with pytest.raises(UnsupportedShape) as exinfo:
            build_descriptor(int)
        expect(str(exinfo.value)).includes("Bits")

    def rejects_unsupported_types(expect):
        with pytest.raises(UnsupportedShape):
            build_descriptor(str)
        with pytest.raises(UnsupportedShape):
            build_descriptor(Annotated[str, Bits(8)])
        with pytest.raises(UnsupportedShape):
            build_descriptor(uint8 | bool)


def describe_optional_annotations():
    def accepts_both_spellings(expect):
        expect(shape_from_type(Optional[uint(7)])) == OptionalShape(IntShape(7))
        expect(shape_from_type(uint(7) | None)) == OptionalShape(IntShape(7))

    def packs_like_the_shape(expect):
        d = build_descriptor(uint(7) | None)
        expect(d.possibilities) == 129
        expect(d.pack(5)) == 6
        expect(d.unpack(0)) == None

    def nests_through_some(expect):
        expect(shape_from_type(Some[uint(2) | None] | None)) == OptionalShape(OptionalShape(IntShape(2)))
        expect(shape_from_type(Some[None] | None)) == OptionalShape(VoidShape())
        d = build_descriptor(Some[bool | None] | None)
        expect(d.unpack(1)) == Some(None)

    def requires_some_for_children_that_can_be_none(expect):
        with pytest.raises(UnsupportedShape):
            shape_from_type(Annotated[uint(2) | None, "note"] | None)
        with pytest.raises(UnsupportedShape):
            shape_from_type(Some[bool] | None)
        with pytest.raises(UnsupportedShape):
            shape_from_type(Some[bool])


def describe_enum_annotations():
    def exhaustive_by_default(expect):
        expect(shape_from_type(Quad)) == EnumShape(Quad)
        expect(build_descriptor(Five).possibilities) == 5

    def open_enums_use_their_declared_type(expect):
        expect(shape_from_type(Status)) == EnumShape(Status, exhaustive=False, backing=IntShape(8))
        d = build_descriptor(Status)
        expect(d.possibilities) == 256
        expect(d.pack(Status.ERROR)) == 1

    def open_enums_round_trip_unknown_values(expect):
        d = build_descriptor(Status)
        value = d.unpack(200)
        expect(value) == 200
        expect(isinstance(value, Status)) == True
        expect(value.is_known) == False
        expect(Status.OK.is_known) == True
        expect(d.pack(value)) == 200
        expect(d.pack(Status(7))) == 7

    def bits_override_the_declared_type(expect):
        expect(build_descriptor(Annotated[Status, Bits(4)]).possibilities) == 16

    def bits_make_exhaustive_enums_open(expect):
        d = build_descriptor(Annotated[Quad, Bits(8)])
        expect(d.possibilities) == 256
        expect(d.unpack(3)) == Quad.D
        expect(d.unpack(9)) == 9

    def open_enums_need_a_type(expect):
        with pytest.raises(UnsupportedShape):
            build_descriptor(Untyped)


def describe_array_annotations():
    def builds_lists(expect):
        d = build_descriptor(Annotated[list[bool], Length(3)])
        expect(d.pack([True, False, True])) == 5
        expect(d.unpack(5)) == [True, False, True]

    def builds_tuples(expect):
        d = build_descriptor(tuple[bool, bool, bool])
        expect(shape_from_type(tuple[bool, bool, bool])) == ArrayShape(BoolShape(), 3, tuple)
        expect(d.pack((True, False, True))) == 5
        expect(d.unpack(5)) == (True, False, True)
        expect(build_descriptor(Annotated[tuple[bool, ...], Length(2)]).unpack(2)) == (False, True)

    def rejects_open_ended_tuples(expect):
        with pytest.raises(UnsupportedShape):
            build_descriptor(tuple[bool, ...])
        with pytest.raises(UnsupportedShape):
            build_descriptor(tuple[bool, uint8])


def describe_structs():
    def packs_in_declaration_order(expect):
        sample = Sample(a=-2, b=Quad.D, c=1)
        expect(sample.pack()) == 94
        expect(Sample.unpack(94)) == sample

    def exposes_the_record_descriptor(expect):
        d = Sample.descriptor()
        expect(isinstance(d, RecordDescriptor)) == True
        expect(d.possibilities) == 160
        expect(d.packed_width) == 8
        expect(d is build_descriptor(Sample)) == True

    def accesses_single_fields(expect):
        expect(Sample.get_field(94, "b")) == Quad.D
        code = Sample.set_field(94, "b", Quad.C)
        expect(code) == 86
        expect(Sample.unpack(code)) == Sample(a=-2, b=Quad.C, c=1)

    def nests(expect):
        outer = Outer(inner=Sample(a=1, b=Quad.A, c=None), flags=[True, True, False], status=Status(9))
        d = Outer.descriptor()
        expect(d.possibilities) == 160 * 8 * 257
        recovered = Outer.unpack(outer.pack())
        expect(recovered) == outer
        expect(recovered.inner) == Sample(a=1, b=Quad.A, c=None)
        expect(Outer.get_field(outer.pack(), "status")) == 9

    def builds_namedtuples(expect):
        d = build_descriptor(Pair)
        expect(d.pack(Pair(3, True))) == 3 + 256
        expect(d.unpack(259)) == Pair(x=3, y=True)

    def rejects_recursive_types(expect):
        with pytest.raises(UnsupportedShape) as exinfo:
            build_descriptor(Node)
        expect(str(exinfo.value)).includes("recursive")

    def rejects_non_init_fields(expect):
        with pytest.raises(UnsupportedShape):
            build_descriptor(WithDerived)


def describe_tagged_unions():
    def packs_variants_in_declaration_order(expect):
        expect(Event.tags()) == ("a", "b", "c")
        expect(Event("a", None).pack()) == 0
        expect(Event("a", 4).pack()) == 5
        expect(Event("b", Five.A).pack()) == 9
        expect(Event("c", True).pack()) == 15

    def unpacks_to_the_declared_class(expect):
        value = Event.unpack(13)
        expect(isinstance(value, Event)) == True
        expect(value) == Event("b", Five.E)
        expect(value.tag) == "b"
        expect(value.value) == Five.E

    def exposes_the_union_descriptor(expect):
        d = Event.descriptor()
        expect(isinstance(d, UnionDescriptor)) == True
        expect(d.possibilities) == 16
        expect(d.packed_width) == 4

    def accesses_the_expected_variant(expect):
        expect(Event.variant_of(13)) == "b"
        expect(Event.get_field(5, "a")) == 4
        with pytest.raises(WrongVariant):
            Event.get_field(5, "c")
        expect(Event.set_field(5, "c", False)) == 14

    def carries_records_and_void(expect):
        d = Command.descriptor()
        expect(d.possibilities) == 1 + 16 + 160
        expect(Command("stop").pack()) == 0
        expect(Command("move", -1).pack()) == 16
        expect(Command("sample", Sample(a=-2, b=Quad.D, c=1)).pack()) == 17 + 94
        expect(Command.unpack(17 + 94)) == Command("sample", Sample(a=-2, b=Quad.D, c=1))
