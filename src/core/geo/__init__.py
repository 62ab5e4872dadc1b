# src/core/geo/__init__.py
"""
Геолокация: расстояния, ранжирование мастерских, внешний поиск механиков.
"""

from src.core.geo.ranking import (
    Coordinate,
    ExternalPlace,
    Ranked,
    distance_km,
    filter_places,
    merge_external_results,
    rank_nearby,
    sort_by_distance,
)
from src.core.geo.service import ExternalSearchClient

__all__ = [
    "Coordinate",
    "ExternalPlace",
    "Ranked",
    "distance_km",
    "filter_places",
    "merge_external_results",
    "rank_nearby",
    "sort_by_distance",
    "ExternalSearchClient",
]
