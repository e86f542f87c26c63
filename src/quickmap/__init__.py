"""quickmap.

Object-to-object property mapping for Python classes.

Maps instances between data-transfer, domain and persistence shapes
(dataclasses, pydantic models, annotated classes) by field name, with
source-declared renames, null policies, pluggable type conversion,
per-field custom converters, per-pair custom mappers and cached compiled
mappers.

Public API for applications embedding the engine.
"""

from quickmap.core.exceptions import (
    ConversionFailure,
    MissingTargetFieldError,
    NullCollectionError,
    NullSourceError,
    QuickMapException,
    ShapeError,
    TargetConstructionError,
)
from quickmap.engine import MappingEngine, get_default_engine, set_default_engine
from quickmap.mapping.conversion import FunctionConverter, TypeConverter
from quickmap.models.engine_config import EngineConfig
from quickmap.models.map_options import MapOptions
from quickmap.shapes.annotations import CustomConverter, DefaultValue, MapTo, PropertyConverter, SkipIfNull

__version__ = "0.1.0"

__all__ = [
    "MappingEngine",
    "get_default_engine",
    "set_default_engine",
    "MapOptions",
    "EngineConfig",
    "TypeConverter",
    "FunctionConverter",
    "PropertyConverter",
    "MapTo",
    "SkipIfNull",
    "DefaultValue",
    "CustomConverter",
    "QuickMapException",
    "NullSourceError",
    "NullCollectionError",
    "ConversionFailure",
    "TargetConstructionError",
    "MissingTargetFieldError",
    "ShapeError",
]
