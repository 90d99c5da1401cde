"""Descriptors: the bijection between a shape's values and ``[0, possibilities)``.

Every descriptor exposes the exact number of values its shape can hold and
packs each of them to a distinct integer below that count. Composite
descriptors combine their children as a mixed-radix number: records and
arrays multiply the children's possibility counts (field 0 is the least
significant digit), unions add them (each variant owns a contiguous range).
"""

import math
import struct
from abc import ABC, abstractmethod
from bisect import bisect_right
from collections.abc import Callable, Mapping, Sequence
from enum import Enum
from typing import Any, Generic, TypeAlias, TypeVar, final

from .errors import InvalidTag, InvalidValue, OutOfRange, UnknownField, UnsupportedShape, WrongVariant
from .values import Some, Variant

T = TypeVar("T")

Json: TypeAlias = dict | list | str | int | float | bool | None

# struct format and fraction bits per width
FLOAT_FORMATS: dict[int, tuple[str, int]] = {
    16: ("<e", 10),
    32: ("<f", 23),
    64: ("<d", 52),
}
DOUBLE_FRACTION_BITS = 52
DOUBLE_EXPONENT_MASK = 0x7FF << DOUBLE_FRACTION_BITS


class Descriptor(ABC, Generic[T]):
    """Packs values of one shape to integers in ``[0, possibilities)``.

    Descriptors are immutable once built, so a single instance can be shared
    by any number of threads.
    """

    __slots__ = ("possibilities",)

    possibilities: int

    @property
    def packed_width(self) -> int:
        """Minimum number of bits able to address every possibility."""
        return (self.possibilities - 1).bit_length()

    @abstractmethod
    def pack(self, value: T) -> int:
        """Pack a value to its code in ``[0, possibilities)``."""
        raise NotImplementedError

    @final
    def unpack(self, code: int) -> T:
        """Unpack a code produced by ``pack``.

        Raises:
            OutOfRange: if the code is not in ``[0, possibilities)``.
        """
        self.check_code(code)
        return self._unpack(code)

    @abstractmethod
    def _unpack(self, code: int) -> T:
        """Inner implementation of ``unpack``, the code is known to be in range."""
        raise NotImplementedError

    @final
    def check_code(self, code: int) -> None:
        """Raise OutOfRange unless ``code`` is an integer in ``[0, possibilities)``."""
        if not isinstance(code, int) or isinstance(code, bool):
            raise OutOfRange(f"expected an integer code, got {type(code).__name__}")
        if not 0 <= code < self.possibilities:
            raise OutOfRange(f"code {code} is outside [0, {self.possibilities})")

    @final
    def value_to_json(self, value: T) -> Json:
        """Convert a value to an object compatible with ``json.dump``."""
        return self._value_to_json(value)

    @final
    def json_to_value(self, json_value: Json) -> T:
        """Convert a value that comes out of ``json.load`` into a value of this shape."""
        return self._json_to_value(json_value)

    def _value_to_json(self, value: T) -> Json:
        return value  # type: ignore[return-value]

    def _json_to_value(self, json_value: Json) -> T:
        return json_value  # type: ignore[return-value]

    def __repr__(self) -> str:
        return f"<{type(self).__name__} possibilities={self.possibilities} width={self.packed_width}>"


class IntDescriptor(Descriptor[int]):
    """A fixed-width integer, packed as its two's complement bit pattern."""

    __slots__ = ("bits", "signed", "_mask")

    def __init__(self, bits: int, signed: bool = False) -> None:
        if bits < 0 or (signed and bits == 0):
            raise UnsupportedShape(f"invalid integer width: {bits} bits")
        self.bits = bits
        self.signed = signed
        self.possibilities = 1 << bits
        self._mask = self.possibilities - 1

    @property
    def min_value(self) -> int:
        return -(self.possibilities >> 1) if self.signed else 0

    @property
    def max_value(self) -> int:
        return (self.possibilities >> 1) - 1 if self.signed else self._mask

    def pack(self, value: int) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidValue(f"expected int, got {type(value).__name__}")
        if not self.min_value <= value <= self.max_value:
            kind = "int" if self.signed else "uint"
            raise InvalidValue(f"{value} does not fit in {kind}{self.bits}")
        return value & self._mask

    def _unpack(self, code: int) -> int:
        if self.signed and code > self.max_value:
            return code - self.possibilities
        return code

    def _json_to_value(self, json_value: Json) -> int:
        if not isinstance(json_value, int) or isinstance(json_value, bool):
            raise InvalidValue(f"expected int, got {json_value!r}")
        return json_value


class FloatDescriptor(Descriptor[float]):
    """An IEEE float, packed as its raw bit pattern.

    NaN payloads of float16 and float32 are carried in the top fraction bits
    of the returned double, so every code round-trips.
    """

    __slots__ = ("bits", "_format", "_fraction_bits", "_exponent_mask")

    def __init__(self, bits: int) -> None:
        if bits not in FLOAT_FORMATS:
            raise UnsupportedShape(f"invalid float width: {bits} bits")
        self.bits = bits
        self.possibilities = 1 << bits
        self._format, self._fraction_bits = FLOAT_FORMATS[bits]
        self._exponent_mask = (self.possibilities >> 1) - (1 << self._fraction_bits)

    def pack(self, value: float) -> int:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            raise InvalidValue(f"expected float, got {type(value).__name__}")
        if self.bits != 64 and isinstance(value, float) and math.isnan(value):
            return self._narrow_nan(value)
        try:
            raw = struct.pack(self._format, value)
        except (OverflowError, struct.error) as e:
            raise InvalidValue(f"{value} does not fit in float{self.bits}") from e
        return int.from_bytes(raw, byteorder="little")

    def _unpack(self, code: int) -> float:
        fraction = code & ((1 << self._fraction_bits) - 1)
        if self.bits != 64 and fraction and code & self._exponent_mask == self._exponent_mask:
            return self._widen_nan(code >> (self.bits - 1), fraction)
        raw = code.to_bytes(self.bits // 8, byteorder="little")
        return struct.unpack(self._format, raw)[0]

    def _widen_nan(self, sign: int, fraction: int) -> float:
        shift = DOUBLE_FRACTION_BITS - self._fraction_bits
        double = sign << 63 | DOUBLE_EXPONENT_MASK | fraction << shift
        return struct.unpack("<d", double.to_bytes(8, byteorder="little"))[0]

    def _narrow_nan(self, value: float) -> int:
        double = int.from_bytes(struct.pack("<d", value), byteorder="little")
        shift = DOUBLE_FRACTION_BITS - self._fraction_bits
        fraction = (double >> shift) & ((1 << self._fraction_bits) - 1)
        if not fraction:
            # payload only in the dropped low bits
            fraction = 1 << (self._fraction_bits - 1)
        return (double >> 63) << (self.bits - 1) | self._exponent_mask | fraction

    def _json_to_value(self, json_value: Json) -> float:
        if not isinstance(json_value, (int, float)) or isinstance(json_value, bool):
            raise InvalidValue(f"expected float, got {json_value!r}")
        return float(json_value)


class BoolDescriptor(Descriptor[bool]):
    __slots__ = ()

    def __init__(self) -> None:
        self.possibilities = 2

    def pack(self, value: bool) -> int:
        if not isinstance(value, bool):
            raise InvalidValue(f"expected bool, got {type(value).__name__}")
        return int(value)

    def _unpack(self, code: int) -> bool:
        return code != 0

    def _json_to_value(self, json_value: Json) -> bool:
        if not isinstance(json_value, bool):
            raise InvalidValue(f"expected bool, got {json_value!r}")
        return json_value


class VoidDescriptor(Descriptor[None]):
    __slots__ = ()

    def __init__(self) -> None:
        self.possibilities = 1

    def pack(self, value: None) -> int:
        if value is not None:
            raise InvalidValue(f"expected None, got {type(value).__name__}")
        return 0

    def _unpack(self, code: int) -> None:
        return None

    def _json_to_value(self, json_value: Json) -> None:
        if json_value is not None:
            raise InvalidValue(f"expected null, got {json_value!r}")
        return None


class EnumDescriptor(Descriptor[Enum]):
    """An exhaustive enum, packed as the member's declaration ordinal.

    The member values are irrelevant: ``{0, 1, 5, 10, 11}`` packs to
    ``{0, 1, 2, 3, 4}``.
    """

    __slots__ = ("enum", "_members", "_ordinals")

    def __init__(self, enum: type[Enum]) -> None:
        members = tuple(enum)
        if not members:
            raise UnsupportedShape(f"enum {enum.__name__} has no members")
        self.enum = enum
        self.possibilities = len(members)
        self._members = members
        self._ordinals = {member.name: i for i, member in enumerate(members)}

    def pack(self, value: Enum) -> int:
        if not isinstance(value, self.enum):
            try:
                value = self.enum(value)
            except ValueError as e:
                raise InvalidTag(f"{value!r} is not a member of {self.enum.__name__}") from e
        return self._ordinals[value.name]

    def _unpack(self, code: int) -> Enum:
        return self._members[code]

    def _value_to_json(self, value: Enum) -> Json:
        return value.name

    def _json_to_value(self, json_value: Json) -> Enum:
        if isinstance(json_value, str):
            try:
                return self.enum[json_value]
            except KeyError as e:
                raise InvalidTag(f"invalid {self.enum.__name__} name: {json_value}") from e
        try:
            return self.enum(json_value)
        except ValueError as e:
            raise InvalidTag(f"invalid {self.enum.__name__} value: {json_value!r}") from e


class OpenEnumDescriptor(Descriptor[Enum | int]):
    """A non-exhaustive enum, packed through the raw value of its backing integer.

    Raw values without a declared member round-trip too: they come back as
    pseudo-members for ``OpenIntEnum`` classes and as plain ints otherwise.
    """

    __slots__ = ("enum", "backing")

    def __init__(self, enum: type[Enum], backing: IntDescriptor) -> None:
        self.enum = enum
        self.backing = backing
        self.possibilities = backing.possibilities

    def pack(self, value: Enum | int) -> int:
        raw = value.value if isinstance(value, Enum) else value
        return self.backing.pack(raw)

    def _unpack(self, code: int) -> Enum | int:
        raw = self.backing._unpack(code)
        try:
            return self.enum(raw)
        except ValueError:
            return raw

    def _value_to_json(self, value: Enum | int) -> Json:
        if isinstance(value, Enum) and value.name is not None:
            return value.name
        return int(value)

    def _json_to_value(self, json_value: Json) -> Enum | int:
        if isinstance(json_value, str):
            try:
                return self.enum[json_value]
            except KeyError as e:
                raise InvalidTag(f"invalid {self.enum.__name__} name: {json_value}") from e
        return self._unpack(self.backing.pack(self.backing.json_to_value(json_value)))


class OptionalDescriptor(Descriptor[Any]):
    """``None`` packs to 0, any other value to ``child.pack(value) + 1``.

    When the child can itself be ``None`` (an optional or void child), present
    values are wrapped in ``Some`` so both layers stay distinguishable.
    """

    __slots__ = ("child", "wraps")

    def __init__(self, child: Descriptor[Any]) -> None:
        self.child = child
        self.wraps = isinstance(child, (OptionalDescriptor, VoidDescriptor))
        self.possibilities = child.possibilities + 1

    def pack(self, value: Any) -> int:
        if value is None:
            return 0
        if isinstance(value, Some):
            value = value.value
        elif self.wraps:
            raise InvalidValue(f"expected None or Some(...), got {type(value).__name__}")
        return self.child.pack(value) + 1

    def _unpack(self, code: int) -> Any:
        if code == 0:
            return None
        value = self.child._unpack(code - 1)
        return Some(value) if self.wraps else value

    def _value_to_json(self, value: Any) -> Json:
        if value is None:
            return None
        if isinstance(value, Some):
            value = value.value
        if self.wraps:
            return {"some": self.child.value_to_json(value)}
        return self.child.value_to_json(value)

    def _json_to_value(self, json_value: Json) -> Any:
        if json_value is None:
            return None
        if not self.wraps:
            return self.child.json_to_value(json_value)
        if not isinstance(json_value, dict) or set(json_value) != {"some"}:
            raise InvalidValue(f'expected null or {{"some": ...}}, got {json_value!r}')
        return Some(self.child.json_to_value(json_value["some"]))


class ArrayDescriptor(Descriptor[Sequence[Any]]):
    """A fixed number of values sharing one radix, element 0 least significant."""

    __slots__ = ("child", "length", "_factory")

    def __init__(
        self,
        child: Descriptor[Any],
        length: int,
        factory: Callable[[list[Any]], Sequence[Any]] = list,
    ) -> None:
        if length < 0:
            raise UnsupportedShape(f"invalid array length: {length}")
        self.child = child
        self.length = length
        self.possibilities = child.possibilities**length
        self._factory = factory

    def pack(self, value: Sequence[Any]) -> int:
        if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
            raise InvalidValue(f"expected a sequence, got {type(value).__name__}")
        if len(value) != self.length:
            raise InvalidValue(f"expected {self.length} elements, got {len(value)}")
        radix = self.child.possibilities
        code = 0
        for item in reversed(value):
            code = code * radix + self.child.pack(item)
        return code

    def _unpack(self, code: int) -> Sequence[Any]:
        radix = self.child.possibilities
        items = []
        for _ in range(self.length):
            code, digit = divmod(code, radix)
            items.append(self.child._unpack(digit))
        return self._factory(items)

    def _value_to_json(self, value: Sequence[Any]) -> Json:
        return [self.child.value_to_json(item) for item in value]

    def _json_to_value(self, json_value: Json) -> Sequence[Any]:
        if not isinstance(json_value, list):
            raise InvalidValue(f"expected a list, got {json_value!r}")
        if len(json_value) != self.length:
            raise InvalidValue(f"expected {self.length} elements, got {len(json_value)}")
        return self._factory([self.child.json_to_value(item) for item in json_value])


FieldSelector: TypeAlias = str | int


def _read_field(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        try:
            return value[name]
        except KeyError as e:
            raise InvalidValue(f"missing field {name!r}") from e
    try:
        return getattr(value, name)
    except AttributeError as e:
        raise InvalidValue(f"{type(value).__name__} has no field {name!r}") from e


class RecordDescriptor(Descriptor[Any]):
    """An ordered product of named fields.

    The code is the mixed-radix number ``f0 + P0 * (f1 + P1 * (f2 + ...))``
    where ``fi`` is field i's packed code and ``Pi`` its possibility count.
    """

    __slots__ = ("fields", "_factory", "_positions", "_weights")

    def __init__(
        self,
        fields: Sequence[tuple[str, Descriptor[Any]]],
        factory: Callable[..., Any] | None = None,
    ) -> None:
        self.fields = tuple(fields)
        self._factory: Callable[..., Any] = dict if factory is None else factory
        self._positions: dict[str, int] = {}
        for i, (name, _) in enumerate(self.fields):
            if name in self._positions:
                raise UnsupportedShape(f"duplicate field {name!r}")
            self._positions[name] = i

        # weight of field i is the product of the radixes below it
        weights = []
        weight = 1
        for _, descriptor in self.fields:
            weights.append(weight)
            weight *= descriptor.possibilities
        self._weights = tuple(weights)
        self.possibilities = weight

    def pack(self, value: Any) -> int:
        code = 0
        for name, descriptor in reversed(self.fields):
            code = code * descriptor.possibilities + descriptor.pack(_read_field(value, name))
        return code

    def _unpack(self, code: int) -> Any:
        kwargs = {}
        for name, descriptor in self.fields:
            code, digit = divmod(code, descriptor.possibilities)
            kwargs[name] = descriptor._unpack(digit)
        return self._factory(**kwargs)

    def position(self, selector: FieldSelector) -> int:
        """Return the position of a field selected by name or position."""
        if isinstance(selector, str):
            try:
                return self._positions[selector]
            except KeyError as e:
                raise UnknownField(f"no field named {selector!r}") from e
        if isinstance(selector, int) and not isinstance(selector, bool):
            if 0 <= selector < len(self.fields):
                return selector
        raise UnknownField(f"no field at position {selector!r}")

    def get_field(self, code: int, selector: FieldSelector) -> Any:
        """Decode a single field without unpacking the whole record."""
        self.check_code(code)
        i = self.position(selector)
        descriptor = self.fields[i][1]
        return descriptor._unpack((code // self._weights[i]) % descriptor.possibilities)

    def set_field(self, code: int, selector: FieldSelector, value: Any) -> int:
        """Return ``code`` with one field replaced, every other digit untouched."""
        self.check_code(code)
        i = self.position(selector)
        descriptor = self.fields[i][1]
        weight = self._weights[i]
        radix = descriptor.possibilities
        lower = code % weight
        upper = code // (weight * radix)
        return (upper * radix + descriptor.pack(value)) * weight + lower

    def _value_to_json(self, value: Any) -> Json:
        return {
            name: descriptor.value_to_json(_read_field(value, name)) for name, descriptor in self.fields
        }

    def _json_to_value(self, json_value: Json) -> Any:
        if not isinstance(json_value, dict):
            raise InvalidValue(f"expected an object, got {json_value!r}")
        unknown = set(json_value) - set(self._positions)
        if unknown:
            raise InvalidValue(f"unknown fields: {', '.join(sorted(unknown))}")
        kwargs = {
            name: descriptor.json_to_value(_read_field(json_value, name))
            for name, descriptor in self.fields
        }
        return self._factory(**kwargs)


def _read_variant(value: Any) -> tuple[str, Any]:
    if isinstance(value, Variant):
        return value.tag, value.value
    if isinstance(value, tuple) and len(value) == 2 and isinstance(value[0], str):
        return value[0], value[1]
    raise InvalidValue(f"expected a Variant, got {type(value).__name__}")


class UnionDescriptor(Descriptor[Any]):
    """An ordered sum of tagged variants.

    Variant i owns the codes ``[start_i, start_i + Pi)`` where ``start_i`` is
    the sum of the possibility counts of the variants before it.
    """

    __slots__ = ("variants", "_factory", "_positions", "_starts")

    def __init__(
        self,
        variants: Sequence[tuple[str, Descriptor[Any]]],
        factory: Callable[[str, Any], Any] | None = None,
    ) -> None:
        if not variants:
            raise UnsupportedShape("union has no variants")
        self.variants = tuple(variants)
        self._factory: Callable[[str, Any], Any] = Variant if factory is None else factory
        self._positions: dict[str, int] = {}
        starts = []
        total = 0
        for i, (tag, descriptor) in enumerate(self.variants):
            if tag in self._positions:
                raise UnsupportedShape(f"duplicate variant {tag!r}")
            self._positions[tag] = i
            starts.append(total)
            total += descriptor.possibilities
        self._starts = tuple(starts)
        self.possibilities = total

    def pack(self, value: Any) -> int:
        tag, payload = _read_variant(value)
        i = self.position(tag)
        return self._starts[i] + self.variants[i][1].pack(payload)

    def _unpack(self, code: int) -> Any:
        i = bisect_right(self._starts, code) - 1
        tag, descriptor = self.variants[i]
        return self._factory(tag, descriptor._unpack(code - self._starts[i]))

    def position(self, tag: str) -> int:
        """Return the position of a variant."""
        try:
            return self._positions[tag]
        except (KeyError, TypeError) as e:
            raise InvalidTag(f"no variant tagged {tag!r}") from e

    def variant_range(self, tag: str) -> range:
        """Return the range of codes owned by a variant."""
        i = self.position(tag)
        start = self._starts[i]
        return range(start, start + self.variants[i][1].possibilities)

    def variant_of(self, code: int) -> str:
        """Return the tag of the variant a code belongs to."""
        self.check_code(code)
        return self.variants[bisect_right(self._starts, code) - 1][0]

    def get_field(self, code: int, tag: str) -> Any:
        """Decode the payload of ``code``, which must belong to variant ``tag``.

        Raises:
            WrongVariant: if the code belongs to another variant.
        """
        self.check_code(code)
        i = self._position_for_access(tag)
        start = self._starts[i]
        descriptor = self.variants[i][1]
        if not start <= code < start + descriptor.possibilities:
            raise WrongVariant(f"code {code} is not a {tag!r} variant")
        return descriptor._unpack(code - start)

    def set_field(self, code: int, tag: str, value: Any) -> int:
        """Return the code of variant ``tag`` carrying ``value``.

        A union holds a single variant, so the whole code is replaced.
        """
        self.check_code(code)
        i = self._position_for_access(tag)
        return self._starts[i] + self.variants[i][1].pack(value)

    def _position_for_access(self, tag: str) -> int:
        try:
            return self.position(tag)
        except InvalidTag as e:
            raise UnknownField(str(e)) from e

    def _value_to_json(self, value: Any) -> Json:
        tag, payload = _read_variant(value)
        return {"tag": tag, "value": self.variants[self.position(tag)][1].value_to_json(payload)}

    def _json_to_value(self, json_value: Json) -> Any:
        if not isinstance(json_value, dict) or "tag" not in json_value:
            raise InvalidValue(f"expected an object with a tag, got {json_value!r}")
        tag = json_value["tag"]
        descriptor = self.variants[self.position(tag)][1]
        return self._factory(tag, descriptor.json_to_value(json_value.get("value")))
