# src/core/geo/service.py
"""
Клиент внешнего поиска автосервисов (SerpAPI, движок google_local).
"""

from __future__ import annotations

import asyncio
from typing import Sequence

import httpx

from src.common.constants import TypeMsg
from src.common.errors import ExternalCollaboratorError, ValidationError
from src.common.logger import log_error, log_info
from src.core.geo.ranking import (
    Coordinate,
    ExternalPlace,
    merge_external_results,
    sort_by_distance,
)


class ExternalSearchClient:
    """
    Поиск механиков и автосервисов рядом с пользователем.

    Один запрос к каталогу даёт одну «корзину» результатов. Поиск по
    нескольким типам услуг запрашивает корзины параллельно, упавшие
    корзины пропускаются.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        engine: str | None = None,
        zoom: int | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        from src.config import settings

        cfg = settings.external_search
        self._api_key = api_key if api_key is not None else cfg.SERP_API_KEY
        self._base_url = base_url or cfg.SERP_BASE_URL
        self._engine = engine or cfg.SERP_ENGINE
        self._zoom = zoom or cfg.SERP_ZOOM
        self._default_query = cfg.DEFAULT_QUERY
        self._default_service_types = list(cfg.DEFAULT_SERVICE_TYPES)
        self._per_bucket = cfg.RESULTS_PER_BUCKET
        self._max_results = cfg.MAX_RESULTS
        self._client = client or httpx.AsyncClient(timeout=timeout or cfg.REQUEST_TIMEOUT)

    async def close(self) -> None:
        await self._client.aclose()

    async def fetch_bucket(
        self,
        user_coord: Coordinate,
        query: str,
        num: int,
    ) -> list[ExternalPlace]:
        """
        Один запрос к каталогу.

        Raises:
            ExternalCollaboratorError: каталог недоступен или ответил ошибкой
        """
        if not self._api_key:
            raise ExternalCollaboratorError(
                "Ключ внешнего поиска не настроен", collaborator="external_search"
            )

        params = {
            "engine": self._engine,
            "q": query,
            "location": f"@{user_coord.latitude},{user_coord.longitude},{self._zoom}z",
            "api_key": self._api_key,
            "num": num,
        }

        try:
            response = await self._client.get(self._base_url, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ExternalCollaboratorError(
                f"Ошибка внешнего поиска '{query}': {e}",
                collaborator="external_search",
            ) from e

        results = data.get("local_results") or []
        await log_info(
            f"Внешний поиск '{query}': найдено {len(results)}",
            type_msg=TypeMsg.DEBUG,
        )
        return [
            ExternalPlace.from_local_result(item)
            for item in results
            if item.get("place_id") and item.get("gps_coordinates")
        ]

    async def find_nearby(
        self,
        user_coord: Coordinate,
        query: str | None = None,
        max_results: int | None = None,
    ) -> list[ExternalPlace]:
        """Поиск по одному запросу, ближайшие первыми."""
        if max_results is not None and max_results <= 0:
            raise ValidationError("max_results должен быть положительным")
        places = await self.fetch_bucket(
            user_coord,
            query or self._default_query,
            max_results or self._max_results,
        )
        return sort_by_distance(places, user_coord)

    async def search_nearby_services(
        self,
        user_coord: Coordinate,
        service_types: Sequence[str] | None = None,
    ) -> list[ExternalPlace]:
        """
        Поиск по нескольким типам услуг с объединением результатов.

        Корзины запрашиваются конкурентно; ошибка одной корзины логируется
        и не влияет на остальные.
        """
        queries = [q for q in (service_types or self._default_service_types) if q.strip()]
        if not queries:
            raise ValidationError("Не задан ни один тип услуги")

        outcomes = await asyncio.gather(
            *(self.fetch_bucket(user_coord, q, self._per_bucket) for q in queries),
            return_exceptions=True,
        )

        buckets: list[list[ExternalPlace]] = []
        for query, outcome in zip(queries, outcomes):
            if isinstance(outcome, BaseException):
                await log_error(f"Корзина внешнего поиска '{query}' пропущена: {outcome}")
                continue
            buckets.append(outcome)

        return merge_external_results(buckets, user_coord, limit=self._max_results)
