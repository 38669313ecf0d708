"""Domain layer: errors, schemas and constants."""

from .errors import ErrorCodes, PolicyRejectError, RegistryError
from .schemas import (
    ImageDimensions,
    MaskingStyle,
    MaskingZone,
    RunLog,
    TransformSpec,
    VariationParams,
    ZoneType,
)

__all__ = [
    "ErrorCodes",
    "PolicyRejectError",
    "RegistryError",
    "ImageDimensions",
    "MaskingStyle",
    "MaskingZone",
    "RunLog",
    "TransformSpec",
    "VariationParams",
    "ZoneType",
]
