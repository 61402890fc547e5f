"""
Guard lifecycle operations, read queries and statistics.

``GuardService`` is built per request with the session, settings and logger
it should use. Field rules run before anything reaches the session; storage
failures come back as the typed errors in ``guard_api.core.errors``.
"""

import logging
from datetime import timedelta
from typing import Any, Mapping, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from guard_api.core.config import Settings
from guard_api.core.errors import (
    Conflict,
    InvalidStateTransition,
    MalformedIdentifier,
    NotFound,
    RecordInvalid,
    ValidationFailed,
)
from guard_api.models.guard import Guard, GuardStatus, EmploymentType
from guard_api.schemas.guards import (
    EmploymentTypeCounts,
    ExpiryWindow,
    GuardCreate,
    GuardQuery,
    GuardStatistics,
    GuardUpdate,
    Pagination,
    SearchParams,
    SiteAssignment,
    as_payload,
)
from guard_api.services import validators
from guard_api.services.guard_repository import GuardRepository, conflicting_field

# statistics always report this window, independent of the warning setting
STATISTICS_EXPIRY_DAYS = 30
DEFAULT_EXPIRY_WINDOW_DAYS = 30
DEFAULT_SEARCH_LIMIT = 10

# fields the server owns; ignored when present in an update payload
_SERVER_FIELDS = ("id", "_id", "assignedSites", "createdAt", "updatedAt", "fullName", "availableForAssignment")


def parse_guard_id(guard_id: Any) -> UUID:
    if isinstance(guard_id, UUID):
        return guard_id
    try:
        return UUID(str(guard_id).strip())
    except (TypeError, ValueError):
        raise MalformedIdentifier()


def _site_id(site_id: Any) -> str:
    if isinstance(site_id, SiteAssignment):
        return site_id.site_id
    return validators.load(SiteAssignment, {"siteId": site_id}, validators.SITE_FIELDS).site_id


def parse_guard_query(params: Mapping[str, Any]) -> GuardQuery:
    """Validate raw listing parameters (strings from a query string) into a GuardQuery."""
    cleaned = {k: v for k, v in params.items() if v not in (None, "")}
    return validators.load(GuardQuery, cleaned, validators.QUERY_FIELDS, prefix="Query validation failed")


class GuardService:
    def __init__(self, db: Session, settings: Settings, logger: Optional[logging.Logger] = None):
        self.db = db
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        self.guards = GuardRepository(db)

    # -------------------------
    # helpers
    # -------------------------
    def _require(self, guard_id: Any) -> Guard:
        guard = self.guards.get(parse_guard_id(guard_id))
        if not guard:
            raise NotFound("Guard")
        return guard

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            field = conflicting_field(exc)
            if field is None:
                raise
            raise Conflict(field) from exc
        except RecordInvalid as exc:
            self.db.rollback()
            raise ValidationFailed(exc.messages, prefix="Validation Error") from exc

    def _warn_if_expiring(self, guard: Guard) -> None:
        cutoff = validators.utcnow() + timedelta(days=self.settings.expiry_warning_days)
        if guard.license_expiry_date <= cutoff:
            self.logger.warning(
                "Security license for guard %s expires on %s",
                guard.employee_id,
                guard.license_expiry_date.isoformat(),
            )

    # -------------------------
    # lifecycle
    # -------------------------
    def create_guard(self, payload: Any) -> Guard:
        payload = as_payload(validators.load(GuardCreate, payload))

        guard = Guard()
        guard.apply(payload)
        # new guards always start active
        guard.status = GuardStatus.active
        guard.replace_skills(payload.get("skills") or [])

        self.db.add(guard)
        self._commit()
        self.db.refresh(guard)

        self.logger.info("Created guard %s (%s)", guard.employee_id, guard.guard_id)
        self._warn_if_expiring(guard)
        return guard

    def get_guard(self, guard_id: Any) -> Guard:
        return self._require(guard_id)

    def get_guard_by_employee_id(self, employee_id: str) -> Guard:
        guard = self.guards.get_by_employee_id(employee_id or "")
        if not guard:
            raise NotFound("Guard")
        return guard

    def update_guard(self, guard_id: Any, payload: Any) -> Guard:
        gid = parse_guard_id(guard_id)
        if isinstance(payload, Mapping):
            payload = {k: v for k, v in payload.items() if k not in _SERVER_FIELDS}
        payload = as_payload(validators.load(GuardUpdate, payload))

        guard = self.guards.get(gid)
        if not guard:
            raise NotFound("Guard")

        guard.apply(payload)
        if payload.get("skills") is not None:
            guard.replace_skills(payload["skills"])
        if guard.status != GuardStatus.active and guard.site_assignments:
            # only active guards may hold sites
            self.logger.info("Guard %s left active status; clearing %d site(s)",
                             guard.employee_id, len(guard.site_assignments))
            guard.site_assignments = []
        guard.updated_at = func.now()

        self._commit()
        self.db.refresh(guard)
        self._warn_if_expiring(guard)
        return guard

    def terminate_guard(self, guard_id: Any) -> Guard:
        gid = parse_guard_id(guard_id)
        if not self.guards.mark_terminated(gid):
            self.db.rollback()
            raise NotFound("Guard")
        self.db.commit()

        self.logger.info("Terminated guard %s", gid)
        return self._require(gid)

    def delete_guard_permanently(self, guard_id: Any) -> bool:
        guard = self.guards.get(parse_guard_id(guard_id))
        if not guard:
            return False
        self.guards.delete(guard)
        self.db.commit()

        self.logger.info("Permanently deleted guard %s", guard_id)
        return True

    def assign_to_site(self, guard_id: Any, site_id: Any) -> Guard:
        gid = parse_guard_id(guard_id)
        site_id = _site_id(site_id)

        try:
            assigned = self.guards.push_site(gid, site_id, validators.utcnow())
        except IntegrityError as exc:
            self.db.rollback()
            raise InvalidStateTransition("Guard is already assigned to this site") from exc

        if not assigned:
            self.db.rollback()
            guard = self._require(gid)
            if guard.status != GuardStatus.active:
                raise InvalidStateTransition("Cannot assign inactive guard to site")
            raise InvalidStateTransition("Guard is not available for assignment")

        self.db.commit()
        self.logger.info("Assigned guard %s to site %s", gid, site_id)
        return self._require(gid)

    def remove_from_site(self, guard_id: Any, site_id: Any) -> Guard:
        gid = parse_guard_id(guard_id)
        site_id = _site_id(site_id)

        self._require(gid)
        if self.guards.pull_site(gid, site_id):
            self.db.commit()
            self.logger.info("Removed guard %s from site %s", gid, site_id)
        self.db.expire_all()
        return self._require(gid)

    # -------------------------
    # queries
    # -------------------------
    def list_guards(self, query: GuardQuery) -> tuple[list[Guard], Pagination]:
        guards, total = self.guards.list_page(query)
        return guards, Pagination.build(query.page, query.limit, total)

    def find_expiring_certifications(self, days: Any = DEFAULT_EXPIRY_WINDOW_DAYS) -> list[Guard]:
        window = validators.load(ExpiryWindow, {"days": days}, validators.EXPIRY_FIELDS)
        cutoff = validators.utcnow() + timedelta(days=window.days)
        return self.guards.find_expiring(cutoff)

    def find_by_skill(self, skill: Any) -> list[Guard]:
        if not isinstance(skill, str) or not skill.strip():
            raise ValidationFailed(["Skill parameter is required"])
        conditions = self.guards.build_filter(status=GuardStatus.active.value, skill=skill.strip())
        return self.guards.find(conditions)

    def find_available(self) -> list[Guard]:
        conditions = self.guards.build_filter(status=GuardStatus.active.value)
        conditions.append(Guard.license_expiry_date > validators.utcnow())
        return self.guards.find(conditions)

    def search(self, term: Any, limit: Any = DEFAULT_SEARCH_LIMIT) -> list[Guard]:
        params = validators.load(SearchParams, {"q": term, "limit": limit}, validators.SEARCH_FIELDS)
        return self.guards.text_search(params.q, params.limit)

    def get_statistics(self) -> GuardStatistics:
        by_status = self.guards.count_by(Guard.status)
        by_type = self.guards.count_by(Guard.employment_type)
        cutoff = validators.utcnow() + timedelta(days=STATISTICS_EXPIRY_DAYS)

        return GuardStatistics(
            total=self.guards.count([]),
            active=by_status.get(GuardStatus.active, 0),
            inactive=by_status.get(GuardStatus.inactive, 0),
            suspended=by_status.get(GuardStatus.suspended, 0),
            terminated=by_status.get(GuardStatus.terminated, 0),
            by_employment_type=EmploymentTypeCounts(
                full_time=by_type.get(EmploymentType.full_time, 0),
                part_time=by_type.get(EmploymentType.part_time, 0),
                contract=by_type.get(EmploymentType.contract, 0),
            ),
            expiring_certifications=self.guards.count_expiring_licenses(cutoff),
        )
