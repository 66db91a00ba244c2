"""Domain models for the time-series grid engine.

This package contains the value types shared by the layout builder, the class
composition engine and the edit session.
"""

from .cell_key import CellKey
from .config_models import DataFieldOption, DimensionRange, FieldValidation, Marker, TableConfig
from .position import CellPosition, Orientation, PositionCategory

__all__ = [
    # Configuration models
    "DataFieldOption",
    "DimensionRange",
    "FieldValidation",
    "Marker",
    "TableConfig",
    # Grid models
    "CellKey",
    "CellPosition",
    "Orientation",
    "PositionCategory",
]
