"""Entity normalization, catalog matching and learned auto-resolution."""

from import_engine.normalization.model import (
    AutoNormalizationResult,
    CreateNewDecision,
    EntityGroup,
    EntityVariant,
    ExistingMatch,
    LinkExistingDecision,
    NormalizationDecision,
    NormalizedMapping,
    SkipDecision,
)
from import_engine.normalization.normalizer import (
    MODEL_LIKE_FIELDS,
    EntityNormalizer,
    normalize_model_name,
    normalize_value,
)
from import_engine.normalization.passthrough import is_passthrough_field, is_passthrough_spec
from import_engine.normalization.resolver import AutoNormalizationResolver
from import_engine.normalization.similarity import calculate_similarity

__all__ = [
    "AutoNormalizationResolver",
    "AutoNormalizationResult",
    "CreateNewDecision",
    "EntityGroup",
    "EntityNormalizer",
    "EntityVariant",
    "ExistingMatch",
    "LinkExistingDecision",
    "MODEL_LIKE_FIELDS",
    "NormalizationDecision",
    "NormalizedMapping",
    "SkipDecision",
    "calculate_similarity",
    "is_passthrough_field",
    "is_passthrough_spec",
    "normalize_model_name",
    "normalize_value",
]
