"""Radixpack schema language, size reports and code generator."""

from .parser import ValidationError as ValidationError
from .parser import declaration_order as declaration_order
from .parser import parse as parse
from .parser import validate as validate
from .shapes import SchemaShapeInfo as SchemaShapeInfo
from .shapes import ShapeInfo as ShapeInfo
from .shapes import ShapeResolver as ShapeResolver
from .shapes import aligned_size as aligned_size
from .shapes import calculate_shapes as calculate_shapes
from .shapes import resolve_shapes as resolve_shapes
from .types import *
