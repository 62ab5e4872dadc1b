# src/core/geo/ranking.py
"""
Расстояния и ранжирование кандидатов по геопозиции.

Все функции чистые: без ввода-вывода и без состояния, поэтому их можно
вызывать параллельно из любых обработчиков.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from functools import cmp_to_key
from typing import Any, Generic, Iterable, Protocol, Sequence, TypeVar

from src.common.errors import ValidationError

EARTH_RADIUS_KM = 6371.0

# Веса для сортировки результатов внешнего поиска
DISTANCE_WEIGHT = 0.7
RATING_WEIGHT = 0.3

MAX_MERGED_RESULTS = 20


@dataclass(frozen=True)
class Coordinate:
    """Точка на карте."""
    latitude: float
    longitude: float


class Locatable(Protocol):
    latitude: float
    longitude: float
    is_open: bool
    rating: float


T = TypeVar("T", bound=Locatable)


@dataclass
class Ranked(Generic[T]):
    """Кандидат с рассчитанным расстоянием до пользователя."""
    item: T
    distance_km: float | None


def _round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Расстояние по дуге большого круга (формула гаверсинуса).

    Returns:
        Километры, округлённые до одного знака
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return _round_half_up(EARTH_RADIUS_KM * c)


def rank_nearby(
    user_coord: Coordinate | None,
    candidates: Iterable[T],
    sort_key: str = "distance",
    radius_km: float | None = None,
) -> list[Ranked[T]]:
    """
    Ранжирует открытые мастерские относительно пользователя.

    Args:
        user_coord: Позиция пользователя; без неё расстояния не считаются,
            радиус игнорируется, порядок по рейтингу
        candidates: Мастерские (закрытые отбрасываются)
        sort_key: "distance" (по возрастанию) или "rating" (по убыванию)
        radius_km: Максимальное расстояние включительно

    Сортировка стабильная: равные ключи сохраняют исходный порядок.
    """
    if sort_key not in ("distance", "rating"):
        raise ValidationError(f"Неизвестный ключ сортировки: {sort_key}")

    open_candidates = [c for c in candidates if c.is_open]

    if user_coord is None:
        ranked = [Ranked(item=c, distance_km=None) for c in open_candidates]
        return sorted(ranked, key=lambda r: -(r.item.rating or 0))

    ranked = [
        Ranked(
            item=c,
            distance_km=distance_km(user_coord.latitude, user_coord.longitude, c.latitude, c.longitude),
        )
        for c in open_candidates
    ]

    if radius_km is not None:
        ranked = [r for r in ranked if r.distance_km <= radius_km]

    if sort_key == "rating":
        return sorted(ranked, key=lambda r: -(r.item.rating or 0))
    return sorted(ranked, key=lambda r: r.distance_km)


# =============================================================================
# ВНЕШНИЙ ПОИСК
# =============================================================================

@dataclass
class ExternalPlace:
    """Сервис, найденный во внешнем каталоге."""
    place_id: str
    title: str
    latitude: float
    longitude: float
    rating: float | None = None
    reviews: int | None = None
    price: str | None = None
    type: str = ""
    address: str = ""
    phone: str | None = None
    website: str | None = None
    hours: str | None = None
    distance_km: float | None = None

    @classmethod
    def from_local_result(cls, data: dict[str, Any]) -> ExternalPlace:
        """Создаёт место из элемента `local_results` ответа поиска."""
        gps = data.get("gps_coordinates") or {}
        links = data.get("links") or {}
        return cls(
            place_id=str(data.get("place_id", "")),
            title=data.get("title", ""),
            latitude=float(gps.get("latitude", 0.0)),
            longitude=float(gps.get("longitude", 0.0)),
            rating=data.get("rating"),
            reviews=data.get("reviews"),
            price=data.get("price"),
            type=data.get("type", ""),
            address=data.get("address", ""),
            phone=links.get("phone") or data.get("phone"),
            website=links.get("website"),
            hours=data.get("hours"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "place_id": self.place_id,
            "title": self.title,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "rating": self.rating,
            "reviews": self.reviews,
            "price": self.price,
            "type": self.type,
            "address": self.address,
            "phone": self.phone,
            "website": self.website,
            "hours": self.hours,
            "distance_km": self.distance_km,
        }


def _with_distance(place: ExternalPlace, user_coord: Coordinate) -> ExternalPlace:
    return replace(
        place,
        distance_km=distance_km(user_coord.latitude, user_coord.longitude, place.latitude, place.longitude),
    )


def _weighted_compare(a: ExternalPlace, b: ExternalPlace) -> float:
    # Ненормированная взвешенная разница, отсутствующие значения = 0
    distance_score = (a.distance_km or 0) - (b.distance_km or 0)
    rating_score = (b.rating or 0) - (a.rating or 0)
    return distance_score * DISTANCE_WEIGHT + rating_score * RATING_WEIGHT


def merge_external_results(
    buckets: Sequence[Sequence[ExternalPlace]],
    user_coord: Coordinate,
    limit: int = MAX_MERGED_RESULTS,
) -> list[ExternalPlace]:
    """
    Сливает корзины результатов внешнего поиска.

    Дубликаты по place_id отбрасываются (остаётся первое вхождение),
    порядок задаётся взвешенным сравнением расстояния и рейтинга.
    """
    seen: set[str] = set()
    merged: list[ExternalPlace] = []
    for bucket in buckets:
        for place in bucket:
            if place.place_id in seen:
                continue
            seen.add(place.place_id)
            merged.append(_with_distance(place, user_coord))

    merged.sort(key=cmp_to_key(_weighted_compare))
    return merged[:min(limit, MAX_MERGED_RESULTS)]


def sort_by_distance(places: Iterable[ExternalPlace], user_coord: Coordinate) -> list[ExternalPlace]:
    """Результаты одного запроса: расстояние и сортировка по возрастанию."""
    return sorted(
        (_with_distance(p, user_coord) for p in places),
        key=lambda p: p.distance_km or 0,
    )


def filter_places(
    places: Iterable[ExternalPlace],
    min_rating: float | None = None,
    max_distance_km: float | None = None,
    price_range: str | None = None,
    sort_by: str = "distance",
) -> list[ExternalPlace]:
    """
    Фильтры расширенного поиска механиков.

    Входные места уже отсортированы по расстоянию; sort_by="rating" или
    "reviews" пересортировывает по убыванию.
    """
    result = list(places)

    if min_rating is not None:
        result = [p for p in result if (p.rating or 0) >= min_rating]
    if max_distance_km is not None:
        result = [p for p in result if (p.distance_km or 0) <= max_distance_km]
    if price_range:
        result = [p for p in result if p.price == price_range]

    match sort_by:
        case "rating":
            result.sort(key=lambda p: -(p.rating or 0))
        case "reviews":
            result.sort(key=lambda p: -(p.reviews or 0))
        case "distance":
            pass
        case _:
            raise ValidationError(f"Неизвестный ключ сортировки: {sort_by}")

    return result
