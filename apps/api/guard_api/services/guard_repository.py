"""
Guard repository.

Translates guard queries into SQLAlchemy statements. Every write that has to
be race-free (terminate, site push / pull) is a single conditional statement
so the database decides, not a read followed by a write.
"""

import logging
from datetime import datetime
from functools import reduce
from typing import Optional
from uuid import UUID

from sqlalchemy import String, and_, case, delete, func, insert, literal, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from guard_api.models.guard import Guard, GuardStatus, EmploymentType, UNIQUE_FIELDS
from guard_api.models.guard_skill import GuardSkill
from guard_api.models.guard_site_assignment import GuardSiteAssignment
from guard_api.schemas.guards import GuardQuery
from guard_api.services.search_text import tokenize

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "firstName": Guard.first_name,
    "lastName": Guard.last_name,
    "hireDate": Guard.hire_date,
    "employeeId": Guard.employee_id,
}


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def conflicting_field(exc: IntegrityError) -> Optional[str]:
    """Public field name behind a unique-constraint violation, if it is one of ours."""
    message = str(exc.orig)
    for constraint, column, field in UNIQUE_FIELDS:
        # postgres names the constraint, sqlite names table.column
        if constraint in message or f"guards.{column}" in message:
            return field
    return None


class GuardRepository:
    def __init__(self, db: Session):
        self.db = db

    # -------------------------
    # lookups
    # -------------------------
    def get(self, guard_id: UUID) -> Optional[Guard]:
        return self.db.get(Guard, guard_id)

    def get_by_employee_id(self, employee_id: str) -> Optional[Guard]:
        stmt = select(Guard).where(Guard.employee_id == employee_id.strip().upper())
        return self.db.execute(stmt).scalars().first()

    # -------------------------
    # filter primitive
    # -------------------------
    def build_filter(
        self,
        status: Optional[str] = None,
        employment_type: Optional[str] = None,
        skill: Optional[str] = None,
        assigned_site: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list:
        conditions = []
        if status:
            conditions.append(Guard.status == GuardStatus(status))
        if employment_type:
            conditions.append(Guard.employment_type == EmploymentType(employment_type))
        if skill:
            conditions.append(Guard.skill_entries.any(GuardSkill.skill == skill))
        if assigned_site:
            conditions.append(Guard.site_assignments.any(GuardSiteAssignment.site_id == assigned_site))
        if search:
            pattern = _like_pattern(search)
            conditions.append(
                or_(
                    Guard.first_name.ilike(pattern, escape="\\"),
                    Guard.last_name.ilike(pattern, escape="\\"),
                    Guard.employee_id.ilike(pattern, escape="\\"),
                    Guard.email.ilike(pattern, escape="\\"),
                )
            )
        return conditions

    def find(self, conditions, order_by=None, offset: Optional[int] = None, limit: Optional[int] = None) -> list[Guard]:
        stmt = select(Guard).where(*conditions)
        stmt = stmt.order_by(*(order_by or (Guard.last_name, Guard.first_name, Guard.guard_id)))
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count(self, conditions) -> int:
        stmt = select(func.count()).select_from(Guard).where(*conditions)
        return self.db.execute(stmt).scalar_one()

    def list_page(self, query: GuardQuery) -> tuple[list[Guard], int]:
        conditions = self.build_filter(
            status=query.status,
            employment_type=query.employment_type,
            skill=query.skill,
            assigned_site=query.assigned_site,
            search=query.search,
        )
        column = SORT_COLUMNS[query.sort_by]
        primary = column.desc() if query.sort_order == "desc" else column.asc()
        # tiebreakers keep pages disjoint when the sort key repeats
        order_by = (primary, Guard.created_at.asc(), Guard.guard_id.asc())

        total = self.count(conditions)
        offset = (query.page - 1) * query.limit
        if offset >= total:
            # past the last page; also keeps huge offsets away from the driver
            return [], total

        guards = self.find(conditions, order_by=order_by, offset=offset, limit=query.limit)
        return guards, total

    # -------------------------
    # relevance search
    # -------------------------
    def text_search(self, term: str, limit: int) -> list[Guard]:
        tokens = tokenize(term)
        if not tokens:
            return []

        padded = literal(" ", String) + Guard.search_vector + literal(" ", String)
        score = reduce(
            lambda acc, expr: acc + expr,
            [case((padded.like(f"% {token} %"), 1), else_=0) for token in tokens],
        )
        stmt = (
            select(Guard)
            .where(score > 0)
            .order_by(score.desc(), Guard.last_name, Guard.first_name, Guard.guard_id)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    # -------------------------
    # conditional writes
    # -------------------------
    def mark_terminated(self, guard_id: UUID) -> bool:
        result = self.db.execute(
            update(Guard)
            .where(Guard.guard_id == guard_id)
            .values(status=GuardStatus.terminated, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return False
        self.db.execute(delete(GuardSiteAssignment).where(GuardSiteAssignment.guard_id == guard_id))
        return True

    def push_site(self, guard_id: UUID, site_id: str, now: datetime) -> bool:
        """Insert the assignment only if the guard is active with a live license.

        Raises IntegrityError when the guard already holds the site.
        """
        eligible = (
            select(Guard.guard_id, literal(site_id, String))
            .where(
                Guard.guard_id == guard_id,
                Guard.status == GuardStatus.active,
                Guard.license_expiry_date > now,
            )
        )
        result = self.db.execute(
            insert(GuardSiteAssignment).from_select(["guard_id", "site_id"], eligible)
        )
        if result.rowcount != 1:
            return False
        self.touch(guard_id)
        return True

    def pull_site(self, guard_id: UUID, site_id: str) -> bool:
        result = self.db.execute(
            delete(GuardSiteAssignment).where(
                and_(GuardSiteAssignment.guard_id == guard_id, GuardSiteAssignment.site_id == site_id)
            )
        )
        if result.rowcount == 0:
            return False
        self.touch(guard_id)
        return True

    def touch(self, guard_id: UUID) -> None:
        self.db.execute(
            update(Guard)
            .where(Guard.guard_id == guard_id)
            .values(updated_at=func.now())
            .execution_options(synchronize_session=False)
        )

    def delete(self, guard: Guard) -> None:
        self.db.delete(guard)

    # -------------------------
    # counts
    # -------------------------
    def count_by(self, column) -> dict:
        stmt = select(column, func.count()).select_from(Guard).group_by(column)
        return {key: n for key, n in self.db.execute(stmt).all()}

    def count_expiring_licenses(self, cutoff: datetime) -> int:
        return self.count([
            Guard.status == GuardStatus.active,
            Guard.license_expiry_date <= cutoff,
        ])

    def find_expiring(self, cutoff: datetime) -> list[Guard]:
        return self.find([
            Guard.status == GuardStatus.active,
            or_(
                Guard.license_expiry_date <= cutoff,
                Guard.first_aid_expiry_date <= cutoff,
                Guard.loss_prevention_expiry_date <= cutoff,
            ),
        ], order_by=(Guard.license_expiry_date, Guard.last_name, Guard.first_name))
