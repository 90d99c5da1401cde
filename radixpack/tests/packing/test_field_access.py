"""Tests for reading and writing single fields of packed codes."""

from enum import Enum, IntEnum, auto

import pytest

from radixpack.packing import (
    BoolShape,
    EnumShape,
    IntShape,
    OptionalShape,
    OutOfRange,
    UnknownField,
    WrongVariant,
    build_descriptor,
    get_field,
    record,
    set_field,
    union,
)


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


SAMPLE = record(
    ("a", IntShape(3, signed=True)),
    ("b", EnumShape(Quad)),
    ("c", OptionalShape(IntShape(2))),
)

EVENT = union(
    ("a", OptionalShape(IntShape(3))),
    ("b", EnumShape(Five)),
    ("c", BoolShape()),
)


def describe_record_fields():
    def reads_a_single_field(expect):
        d = build_descriptor(SAMPLE)
        expect(get_field(d, 94, "a")) == -2
        expect(get_field(d, 94, "b")) == Quad.D
        expect(get_field(d, 94, "c")) == 1

    def selects_fields_by_position(expect):
        d = build_descriptor(SAMPLE)
        expect(get_field(d, 94, 0)) == -2
        expect(get_field(d, 94, 2)) == 1

    def writes_a_single_field(expect):
        d = build_descriptor(SAMPLE)
        code = set_field(d, 94, "b", Quad.C)
        expect(code) == 6 + 8 * (2 + 4 * 2)
        expect(get_field(d, code, "c")) == 1
        expect(d.unpack(code)) == {"a": -2, "b": Quad.C, "c": 1}

    def never_perturbs_other_fields(expect):
        d = build_descriptor(SAMPLE)
        candidates = {
            "a": range(-4, 4),
            "b": list(Quad),
            "c": [None, 0, 1, 2, 3],
        }
        for code in range(d.possibilities):
            before = d.unpack(code)
            for name, values in candidates.items():
                for value in values:
                    updated = set_field(d, code, name, value)
                    after = d.unpack(updated)
                    assert after[name] == value
                    for other in candidates:
                        if other != name:
                            assert after[other] == before[other]

    def rejects_unknown_fields(expect):
        d = build_descriptor(SAMPLE)
        with pytest.raises(UnknownField):
            get_field(d, 94, "z")
        with pytest.raises(UnknownField):
            get_field(d, 94, 3)
        with pytest.raises(UnknownField):
            set_field(d, 94, "z", 1)

    def rejects_codes_outside_the_range(expect):
        d = build_descriptor(SAMPLE)
        with pytest.raises(OutOfRange):
            get_field(d, 160, "a")
        with pytest.raises(OutOfRange):
            set_field(d, -1, "a", 0)


def describe_union_fields():
    def reads_the_expected_variant(expect):
        d = build_descriptor(EVENT)
        expect(get_field(d, 13, "b")) == Five.E
        expect(get_field(d, 5, "a")) == 4
        expect(get_field(d, 0, "a")) == None
        expect(get_field(d, 15, "c")) == True

    def fails_on_another_variant(expect):
        d = build_descriptor(EVENT)
        with pytest.raises(WrongVariant):
            get_field(d, 13, "a")
        with pytest.raises(WrongVariant):
            get_field(d, 8, "b")

    def replaces_the_whole_code(expect):
        d = build_descriptor(EVENT)
        expect(set_field(d, 0, "c", True)) == 15
        expect(set_field(d, 15, "b", Five.C)) == 11

    def rejects_unknown_tags(expect):
        with pytest.raises(UnknownField):
            get_field(build_descriptor(EVENT), 0, "z")


def describe_other_descriptors():
    def have_no_field_access(expect):
        with pytest.raises(TypeError):
            get_field(build_descriptor(BoolShape()), 1, 0)
        with pytest.raises(TypeError):
            set_field(build_descriptor(IntShape(8)), 1, 0, 2)
