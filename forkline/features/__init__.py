"""Capability declarations and feature set resolution.

 - The catalog lists every capability and its closed set of variants.
 - Build flags and runtime selections are resolved into a ``FeatureSet``
   exactly once, at process start.
 - Resolution is pure, so it can be exercised without starting anything.

 This package exports:

 - ``Flag``/``Variant``/``Capability``/``Catalog``: declarations.
 - ``FeatureSet``: resolution output.
 - ``resolve_feature_set``/``check_availability``: resolution entry points.
 """

from .models import Capability, Catalog, FeatureSet, Flag, Variant
from .resolver import check_availability, resolve_feature_set

__all__ = [
    "Capability",
    "Catalog",
    "FeatureSet",
    "Flag",
    "Variant",
    "check_availability",
    "resolve_feature_set",
]
