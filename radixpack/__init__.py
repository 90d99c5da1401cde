"""radixpack - Pack composite values into the fewest bits that can hold them."""

from importlib.metadata import PackageNotFoundError, version

from .packing import *

try:
    __version__ = version("radixpack")
except PackageNotFoundError:
    __version__ = "(local)"
