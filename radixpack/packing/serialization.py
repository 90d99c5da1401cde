"""Base classes for declared record and union types."""

from typing import Any, Self

from .builder import build_descriptor
from .descriptors import FieldSelector, RecordDescriptor, UnionDescriptor
from .values import Variant


class Struct:
    """Base class for packable records.

    Subclasses should be @dataclass decorated; every field needs an annotation
    that ``build_descriptor`` understands.

    Example:
        @dataclass
        class Sample(Struct):
            channel: Annotated[int, Bits(3)]
            valid: bool
            status: Status | None

        code = Sample(channel=5, valid=True, status=None).pack()
        sample = Sample.unpack(code)
    """

    @classmethod
    def descriptor(cls) -> RecordDescriptor:
        """Return the (cached) descriptor of this record type."""
        return build_descriptor(cls)  # type: ignore[return-value]

    def pack(self) -> int:
        """Pack this record to its code."""
        return self.descriptor().pack(self)

    @classmethod
    def unpack(cls, code: int) -> Self:
        """Unpack a record from its code."""
        return cls.descriptor().unpack(code)

    @classmethod
    def get_field(cls, code: int, selector: FieldSelector) -> Any:
        """Decode one field of a packed record without unpacking the others."""
        return cls.descriptor().get_field(code, selector)

    @classmethod
    def set_field(cls, code: int, selector: FieldSelector, value: Any) -> int:
        """Return ``code`` with one field replaced by ``value``."""
        return cls.descriptor().set_field(code, selector, value)


class TaggedUnion(Variant):
    """Base class for packable tagged unions.

    Each annotation of a subclass declares a variant, in order. Instances carry
    the ``tag`` of one variant and its ``value``.

    Example:
        class Command(TaggedUnion):
            stop: None
            move: Annotated[int, Bits(4, signed=True)]
            light: bool | None

        code = Command("move", -3).pack()
        command = Command.unpack(code)
    """

    @classmethod
    def descriptor(cls) -> UnionDescriptor:
        """Return the (cached) descriptor of this union type."""
        return build_descriptor(cls)  # type: ignore[return-value]

    @classmethod
    def tags(cls) -> tuple[str, ...]:
        """Return the variant tags in declaration order."""
        return tuple(tag for tag, _ in cls.descriptor().variants)

    def pack(self) -> int:
        """Pack this value to its code."""
        return self.descriptor().pack(self)

    @classmethod
    def unpack(cls, code: int) -> Self:
        """Unpack a value from its code."""
        return cls.descriptor().unpack(code)

    @classmethod
    def variant_of(cls, code: int) -> str:
        """Return the tag of the variant a code holds."""
        return cls.descriptor().variant_of(code)

    @classmethod
    def get_field(cls, code: int, tag: str) -> Any:
        """Decode the payload of ``code``, raising WrongVariant if it holds another variant."""
        return cls.descriptor().get_field(code, tag)

    @classmethod
    def set_field(cls, code: int, tag: str, value: Any) -> int:
        """Return the code of variant ``tag`` carrying ``value``."""
        return cls.descriptor().set_field(code, tag, value)
