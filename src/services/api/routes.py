# src/services/api/routes.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import ValidationError as PydanticValidationError

from src.common.constants import ServiceStatus
from src.common.errors import PermissionDeniedError, ValidationError
from src.core.access import Actor
from src.core.assignment import AssignmentCoordinator, AvailabilityChange
from src.core.geo import Coordinate, filter_places, rank_nearby
from src.core.notifications import NotificationFanout
from src.core.requests import (
    AssignRequest,
    CancelRequest,
    CostEstimator,
    EstimateRequest,
    RequestLifecycleManager,
    StatusChange,
)
from src.core.updates import ServiceUpdateLog
from src.services.api.dependencies import (
    ServiceContainer,
    get_actor,
    get_container,
    get_coordinator,
    get_fanout,
    get_lifecycle,
    get_update_log,
)

# =============================================================================
# ЗАЯВКИ
# =============================================================================

services_router = APIRouter(prefix="/services", tags=["Services"])


def _status_filter(status: Optional[str]) -> ServiceStatus | None:
    if status is None or status.upper() == "ALL":
        return None
    try:
        return ServiceStatus(status.upper())
    except ValueError:
        raise ValidationError(
            "Validation failed",
            details=[{"field": "status", "message": f"Неизвестный статус: {status}"}],
        )


@services_router.post("", status_code=201)
async def create_service_request(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    lifecycle: RequestLifecycleManager = Depends(get_lifecycle),
):
    request = await lifecycle.create(actor, payload)
    return {"message": "Service request created successfully", "service_request": request}


@services_router.post("/estimate")
async def estimate_cost(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
):
    try:
        data = EstimateRequest.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e
    return {"estimate": CostEstimator().estimate(data)}


@services_router.get("/my-requests")
async def my_requests(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    lifecycle: RequestLifecycleManager = Depends(get_lifecycle),
):
    return {"service_requests": await lifecycle.list_for_customer(actor, limit=limit, offset=offset)}


@services_router.get("/my-tasks")
async def my_tasks(
    status: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    lifecycle: RequestLifecycleManager = Depends(get_lifecycle),
):
    tasks = await lifecycle.list_for_mechanic(actor, status=_status_filter(status), limit=limit, offset=offset)
    return {"service_requests": tasks}


@services_router.get("")
async def workshop_requests(
    status: Optional[str] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    actor: Actor = Depends(get_actor),
    lifecycle: RequestLifecycleManager = Depends(get_lifecycle),
):
    requests = await lifecycle.list_for_workshop(actor, status=_status_filter(status), limit=limit, offset=offset)
    return {"service_requests": requests}


@services_router.get("/{request_id}")
async def get_service_request(
    request_id: str,
    actor: Actor = Depends(get_actor),
    lifecycle: RequestLifecycleManager = Depends(get_lifecycle),
):
    return {"service_request": await lifecycle.get(request_id, actor)}


@services_router.put("/{request_id}/assign")
async def assign_mechanic(
    request_id: str,
    body: AssignRequest,
    actor: Actor = Depends(get_actor),
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
):
    if not actor.is_workshop_admin:
        raise PermissionDeniedError("Назначать механиков может только админ мастерской")
    request = await coordinator.assign(request_id, body.mechanic_id, actor.user_id)
    return {"message": "Mechanic assigned successfully", "service_request": request}


@services_router.put("/{request_id}/status")
async def update_status(
    request_id: str,
    body: StatusChange,
    actor: Actor = Depends(get_actor),
    lifecycle: RequestLifecycleManager = Depends(get_lifecycle),
):
    request = await lifecycle.transition(
        request_id,
        body.status,
        actor,
        notes=body.message,
        estimated_cost=body.estimated_cost,
        actual_cost=body.actual_cost,
    )
    return {"message": "Status updated successfully", "service_request": request}


@services_router.post("/{request_id}/cancel")
async def cancel_service_request(
    request_id: str,
    body: Optional[CancelRequest] = None,
    actor: Actor = Depends(get_actor),
    lifecycle: RequestLifecycleManager = Depends(get_lifecycle),
):
    reason = body.reason if body else None
    request = await lifecycle.cancel(request_id, actor, reason=reason)
    return {"message": "Service request cancelled", "service_request": request}


@services_router.get("/{request_id}/updates")
async def list_updates(
    request_id: str,
    actor: Actor = Depends(get_actor),
    update_log: ServiceUpdateLog = Depends(get_update_log),
):
    return {"updates": await update_log.list(request_id, actor)}


@services_router.post("/{request_id}/updates", status_code=201)
async def append_update(
    request_id: str,
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    update_log: ServiceUpdateLog = Depends(get_update_log),
):
    update = await update_log.append(
        request_id,
        actor,
        message=payload.get("message"),
        images=payload.get("images"),
    )
    return {"message": "Update added successfully", "update": update}


# =============================================================================
# УВЕДОМЛЕНИЯ
# =============================================================================

notifications_router = APIRouter(prefix="/notifications", tags=["Notifications"])


@notifications_router.get("")
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = False,
    actor: Actor = Depends(get_actor),
    fanout: NotificationFanout = Depends(get_fanout),
):
    notifications = await fanout.list_for_user(
        actor.user_id, limit=limit, offset=offset, unread_only=unread_only
    )
    return {"notifications": notifications}


@notifications_router.get("/unread-count")
async def unread_count(
    actor: Actor = Depends(get_actor),
    fanout: NotificationFanout = Depends(get_fanout),
):
    return {"count": await fanout.unread_count(actor.user_id)}


@notifications_router.patch("/read-all")
async def mark_all_read(
    actor: Actor = Depends(get_actor),
    fanout: NotificationFanout = Depends(get_fanout),
):
    return {"updated": await fanout.mark_all_read(actor.user_id)}


@notifications_router.patch("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    actor: Actor = Depends(get_actor),
    fanout: NotificationFanout = Depends(get_fanout),
):
    return {"notification": await fanout.mark_read(notification_id, actor.user_id)}


# =============================================================================
# ПОИСК МАСТЕРСКИХ И МЕХАНИКОВ
# =============================================================================

discovery_router = APIRouter(tags=["Discovery"])


def _coordinate(latitude: Optional[float], longitude: Optional[float]) -> Coordinate | None:
    if latitude is None or longitude is None:
        return None
    return Coordinate(latitude=latitude, longitude=longitude)


def _split(value: Optional[str]) -> list[str] | None:
    if not value:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


@discovery_router.get("/workshops/nearby")
async def nearby_workshops(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    radius: Optional[float] = Query(None, gt=0),
    sort_by: str = "distance",
    container: ServiceContainer = Depends(get_container),
):
    """Открытые мастерские рядом с пользователем."""
    if radius is None:
        from src.config import settings
        radius = settings.discovery.DEFAULT_RADIUS_KM

    ranked = rank_nearby(
        _coordinate(latitude, longitude),
        await container.workshops.list_open(),
        sort_key=sort_by,
        radius_km=radius,
    )
    workshops = [
        {**r.item.model_dump(mode="json"), "distance_km": r.distance_km}
        for r in ranked
    ]
    return {"workshops": workshops, "total": len(workshops)}


@discovery_router.get("/mechanics/nearby")
async def nearby_mechanics(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    query: Optional[str] = None,
    service_types: Optional[str] = None,
    max_results: Optional[int] = Query(None, ge=1),
    container: ServiceContainer = Depends(get_container),
):
    """
    Сервисы из внешнего каталога.

    С `service_types` (через запятую) выполняется поиск по нескольким
    корзинам с объединением, иначе один запрос `query`.
    """
    coord = Coordinate(latitude=latitude, longitude=longitude)
    types = _split(service_types)
    if types:
        places = await container.search.search_nearby_services(coord, types)
    else:
        places = await container.search.find_nearby(coord, query=query, max_results=max_results)
    return {"mechanics": [p.to_dict() for p in places], "total": len(places)}


@discovery_router.get("/mechanics/search")
async def search_mechanics(
    latitude: float = Query(..., ge=-90, le=90),
    longitude: float = Query(..., ge=-180, le=180),
    query: Optional[str] = None,
    min_rating: Optional[float] = Query(None, ge=0),
    max_distance: Optional[float] = Query(None, gt=0),
    price_range: Optional[str] = None,
    sort_by: str = "distance",
    container: ServiceContainer = Depends(get_container),
):
    coord = Coordinate(latitude=latitude, longitude=longitude)
    places = await container.search.find_nearby(coord, query=query)
    filtered = filter_places(
        places,
        min_rating=min_rating,
        max_distance_km=max_distance,
        price_range=price_range,
        sort_by=sort_by,
    )
    return {"mechanics": [p.to_dict() for p in filtered], "total": len(filtered)}


@discovery_router.patch("/mechanics/{mechanic_id}/availability")
async def set_availability(
    mechanic_id: str,
    body: AvailabilityChange,
    actor: Actor = Depends(get_actor),
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
):
    mechanic = await coordinator.set_availability(actor, mechanic_id, body.availability)
    return {"mechanic": mechanic}


@discovery_router.get("/mechanics/{mechanic_id}/schedule")
async def mechanic_schedule(
    mechanic_id: str,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    actor: Actor = Depends(get_actor),
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
):
    return {"schedule": await coordinator.list_schedule(actor, mechanic_id, start=start, end=end)}


@discovery_router.post("/mechanic-schedules", status_code=201)
async def create_schedule_entry(
    payload: dict[str, Any] = Body(...),
    actor: Actor = Depends(get_actor),
    coordinator: AssignmentCoordinator = Depends(get_coordinator),
):
    entry = await coordinator.add_schedule_entry(actor, payload)
    return {"message": "Schedule entry created", "schedule_entry": entry}
