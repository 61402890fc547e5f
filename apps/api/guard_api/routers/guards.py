import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from guard_api.core.database import get_db
from guard_api.core.errors import NotFound
from guard_api.core.responses import http_response
from guard_api.schemas.guards import ExpiryWindow, GuardCreate, GuardOut, GuardUpdate, SiteAssignment
from guard_api.services import validators
from guard_api.services.guard_service import GuardService, parse_guard_id, parse_guard_query

router = APIRouter()


def get_guard_service(request: Request, db: Session = Depends(get_db)) -> GuardService:
    return GuardService(db, request.app.state.settings, logging.getLogger("guard_api.guards"))


def guard_id_param(guard_id: str) -> UUID:
    # resolved before the body so a bad id answers 400 Invalid guard ID format
    return parse_guard_id(guard_id)


def _many(guards) -> list[dict]:
    return [GuardOut.from_model(g).to_json() for g in guards]


def _one(guard) -> dict:
    return {"guard": GuardOut.from_model(guard).to_json()}


# --- CRUD ---
@router.post("")
def create_guard(request: Request, payload: GuardCreate, service: GuardService = Depends(get_guard_service)):
    guard = service.create_guard(payload)
    return http_response(request, 201, "Guard created successfully", _one(guard))


@router.get("")
def list_guards(
    request: Request,
    status: Optional[str] = Query(None),
    employment_type: Optional[str] = Query(None, alias="employmentType"),
    skill: Optional[str] = Query(None),
    assigned_site: Optional[str] = Query(None, alias="assignedSite"),
    search: Optional[str] = Query(None),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_order: Optional[str] = Query(None, alias="sortOrder"),
    service: GuardService = Depends(get_guard_service),
):
    query = parse_guard_query({
        "status": status,
        "employmentType": employment_type,
        "skill": skill,
        "assignedSite": assigned_site,
        "search": search,
        "page": page,
        "limit": limit,
        "sortBy": sort_by,
        "sortOrder": sort_order,
    })
    guards, pagination = service.list_guards(query)
    return http_response(request, 200, "Guards retrieved successfully", {
        "guards": _many(guards),
        "pagination": pagination.model_dump(by_alias=True),
    })


# --- Reporting (declared before /{guard_id} so the literal paths win) ---
@router.get("/expiring-certifications")
def get_expiring_certifications(
    request: Request,
    days: str = Query("30"),
    service: GuardService = Depends(get_guard_service),
):
    window = validators.load(ExpiryWindow, {"days": days}, validators.EXPIRY_FIELDS)
    guards = service.find_expiring_certifications(window.days)
    return http_response(
        request, 200,
        f"Guards with certifications expiring in {window.days} days retrieved successfully",
        {"guards": _many(guards), "expiringIn": window.days, "count": len(guards)},
    )


@router.get("/available")
def get_available_guards(request: Request, service: GuardService = Depends(get_guard_service)):
    guards = service.find_available()
    return http_response(request, 200, "Available guards retrieved successfully", {
        "guards": _many(guards),
        "count": len(guards),
    })


@router.get("/search")
def search_guards(
    request: Request,
    q: Optional[str] = Query(None),
    limit: str = Query("10"),
    service: GuardService = Depends(get_guard_service),
):
    guards = service.search(q, limit)
    return http_response(request, 200, f"Search results for '{q.strip()}' retrieved successfully", {
        "guards": _many(guards),
        "searchTerm": q.strip(),
        "count": len(guards),
    })


@router.get("/statistics")
def get_guard_statistics(request: Request, service: GuardService = Depends(get_guard_service)):
    statistics = service.get_statistics()
    return http_response(request, 200, "Guard statistics retrieved successfully", {
        "statistics": statistics.model_dump(by_alias=True),
    })


@router.get("/by-skill/{skill}")
def get_guards_by_skill(request: Request, skill: str, service: GuardService = Depends(get_guard_service)):
    guards = service.find_by_skill(skill)
    return http_response(request, 200, f"Guards with skill '{skill}' retrieved successfully", {
        "guards": _many(guards),
        "skill": skill,
        "count": len(guards),
    })


@router.get("/employee/{employee_id}")
def get_guard_by_employee_id(request: Request, employee_id: str, service: GuardService = Depends(get_guard_service)):
    guard = service.get_guard_by_employee_id(employee_id)
    return http_response(request, 200, "Guard retrieved successfully", _one(guard))


# --- Single guard ---
@router.get("/{guard_id}")
def get_guard(request: Request, guard_id: str, service: GuardService = Depends(get_guard_service)):
    guard = service.get_guard(guard_id)
    return http_response(request, 200, "Guard retrieved successfully", _one(guard))


@router.put("/{guard_id}")
def update_guard(
    request: Request,
    payload: GuardUpdate,
    gid: UUID = Depends(guard_id_param),
    service: GuardService = Depends(get_guard_service),
):
    guard = service.update_guard(gid, payload)
    return http_response(request, 200, "Guard updated successfully", _one(guard))


@router.delete("/{guard_id}")
def terminate_guard(request: Request, guard_id: str, service: GuardService = Depends(get_guard_service)):
    guard = service.terminate_guard(guard_id)
    return http_response(request, 200, "Guard terminated successfully", _one(guard))


@router.delete("/{guard_id}/permanent")
def delete_guard_permanently(request: Request, guard_id: str, service: GuardService = Depends(get_guard_service)):
    if not service.delete_guard_permanently(guard_id):
        raise NotFound("Guard")
    return http_response(request, 200, "Guard permanently deleted successfully", None)


# --- Site assignment ---
@router.post("/{guard_id}/assign-site")
def assign_guard_to_site(
    request: Request,
    payload: SiteAssignment,
    gid: UUID = Depends(guard_id_param),
    service: GuardService = Depends(get_guard_service),
):
    guard = service.assign_to_site(gid, payload)
    return http_response(request, 200, "Guard assigned to site successfully", _one(guard))


@router.post("/{guard_id}/remove-site")
def remove_guard_from_site(
    request: Request,
    payload: SiteAssignment,
    gid: UUID = Depends(guard_id_param),
    service: GuardService = Depends(get_guard_service),
):
    guard = service.remove_from_site(gid, payload)
    return http_response(request, 200, "Guard removed from site successfully", _one(guard))
