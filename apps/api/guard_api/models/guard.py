import enum
import uuid
from datetime import datetime
from typing import Any, Mapping, Optional

from sqlalchemy import Column, String, Date, DateTime, Float, Text, Enum, Index, Uuid, UniqueConstraint, event, inspect
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from guard_api.core.database import Base
from guard_api.core.errors import RecordInvalid
from guard_api.models.guard_skill import GuardSkill
from guard_api.models.guard_site_assignment import GuardSiteAssignment
from guard_api.schemas.guards import validate_create, validate_update
from guard_api.services import validators
from guard_api.services.search_text import build_search_vector

class GuardStatus(str, enum.Enum):
    active = "active"
    inactive = "inactive"
    suspended = "suspended"
    terminated = "terminated"

class EmploymentType(str, enum.Enum):
    full_time = "full-time"
    part_time = "part-time"
    contract = "contract"

def _enum_values(enum_cls):
    return [member.value for member in enum_cls]

class Guard(Base):
    __tablename__ = "guards"

    guard_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    employee_id = Column(String(10), nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    email = Column(String(254), nullable=False)
    phone = Column(String(30), nullable=False)

    address_street = Column(String(100), nullable=False)
    address_city = Column(String(50), nullable=False)
    address_province = Column(String(2), nullable=False)
    address_postal_code = Column(String(7), nullable=False)
    address_country = Column(String(20), nullable=False, default="Canada")

    emergency_contact_name = Column(String(100), nullable=False)
    emergency_contact_relationship = Column(String(50), nullable=False)
    emergency_contact_phone = Column(String(30), nullable=False)

    hire_date = Column(Date, nullable=False)
    employment_type = Column(
        Enum(EmploymentType, name="employment_type", values_callable=_enum_values),
        nullable=False,
    )
    hourly_rate = Column(Float, nullable=False)
    status = Column(
        Enum(GuardStatus, name="guard_status", values_callable=_enum_values),
        nullable=False,
        default=GuardStatus.active,
    )

    license_number = Column(String(50), nullable=False)
    license_issue_date = Column(DateTime, nullable=False)
    license_expiry_date = Column(DateTime, nullable=False)
    license_issuing_authority = Column(String(100), nullable=False)

    # optional certifications: the block exists when any of its columns is set
    first_aid_number = Column(String(50), nullable=True)
    first_aid_issue_date = Column(DateTime, nullable=True)
    first_aid_expiry_date = Column(DateTime, nullable=True)
    first_aid_issuing_authority = Column(String(100), nullable=True)

    loss_prevention_number = Column(String(50), nullable=True)
    loss_prevention_issue_date = Column(DateTime, nullable=True)
    loss_prevention_expiry_date = Column(DateTime, nullable=True)
    loss_prevention_issuing_authority = Column(String(100), nullable=True)

    profile_image = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    # folded tokens of name / employee id / email, kept in sync by the flush hooks
    search_vector = Column(Text, nullable=False, default="")

    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    skill_entries = relationship(
        GuardSkill,
        order_by=GuardSkill.position,
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    site_assignments = relationship(
        GuardSiteAssignment,
        order_by=GuardSiteAssignment.assignment_id,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("employee_id", name="uq_guards_employee_id"),
        UniqueConstraint("email", name="uq_guards_email"),
        UniqueConstraint("license_number", name="uq_guards_license_number"),
        Index("ix_guards_status", "status"),
        Index("ix_guards_employment_type", "employment_type"),
        Index("ix_guards_name", "first_name", "last_name"),
        Index("ix_guards_license_expiry_date", "license_expiry_date"),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def skills(self) -> list[str]:
        return [entry.skill for entry in self.skill_entries]

    @property
    def assigned_sites(self) -> list[str]:
        return [a.site_id for a in self.site_assignments]

    def is_available_for_assignment(self, now: Optional[datetime] = None) -> bool:
        now = now or validators.utcnow()
        return self.status == GuardStatus.active and self.license_expiry_date > now

    def replace_skills(self, skills) -> None:
        self.skill_entries = [GuardSkill(position=i, skill=skill) for i, skill in enumerate(skills)]

    def apply(self, payload: Mapping[str, Any]) -> None:
        """Copy every supplied field of a (possibly partial) validated payload onto the columns."""
        for block, columns in OPTIONAL_BLOCKS.items():
            if _lookup(payload, block) is None:
                for column in columns:
                    setattr(self, column, None)

        for path, column in FIELD_COLUMNS:
            value = _lookup(payload, path)
            if value is _MISSING:
                continue
            setattr(self, column, _to_column(column, value))

    def to_payload(self, columns=None) -> dict:
        """Nested payload view of the given columns (all of them by default)."""
        wanted = set(columns) if columns is not None else None
        payload: dict = {}
        for path, column in FIELD_COLUMNS:
            if wanted is not None and column not in wanted:
                continue
            value = getattr(self, column)
            if isinstance(value, enum.Enum):
                value = value.value
            if value is None and path[:2] in OPTIONAL_BLOCKS:
                continue
            node = payload
            for key in path[:-1]:
                node = node.setdefault(key, {})
            node[path[-1]] = value
        return payload


# (payload path, column)
FIELD_COLUMNS = (
    (("employeeId",), "employee_id"),
    (("firstName",), "first_name"),
    (("lastName",), "last_name"),
    (("email",), "email"),
    (("phone",), "phone"),
    (("address", "street"), "address_street"),
    (("address", "city"), "address_city"),
    (("address", "province"), "address_province"),
    (("address", "postalCode"), "address_postal_code"),
    (("address", "country"), "address_country"),
    (("emergencyContact", "name"), "emergency_contact_name"),
    (("emergencyContact", "relationship"), "emergency_contact_relationship"),
    (("emergencyContact", "phone"), "emergency_contact_phone"),
    (("employmentDetails", "hireDate"), "hire_date"),
    (("employmentDetails", "employmentType"), "employment_type"),
    (("employmentDetails", "hourlyRate"), "hourly_rate"),
    (("employmentDetails", "status"), "status"),
    (("certifications", "securityLicense", "number"), "license_number"),
    (("certifications", "securityLicense", "issueDate"), "license_issue_date"),
    (("certifications", "securityLicense", "expiryDate"), "license_expiry_date"),
    (("certifications", "securityLicense", "issuingAuthority"), "license_issuing_authority"),
    (("certifications", "firstAid", "number"), "first_aid_number"),
    (("certifications", "firstAid", "issueDate"), "first_aid_issue_date"),
    (("certifications", "firstAid", "expiryDate"), "first_aid_expiry_date"),
    (("certifications", "firstAid", "issuingAuthority"), "first_aid_issuing_authority"),
    (("certifications", "lossPreventionCertification", "number"), "loss_prevention_number"),
    (("certifications", "lossPreventionCertification", "issueDate"), "loss_prevention_issue_date"),
    (("certifications", "lossPreventionCertification", "expiryDate"), "loss_prevention_expiry_date"),
    (("certifications", "lossPreventionCertification", "issuingAuthority"), "loss_prevention_issuing_authority"),
    (("profileImage",), "profile_image"),
    (("notes",), "notes"),
)

OPTIONAL_BLOCKS = {
    ("certifications", "firstAid"): [c for p, c in FIELD_COLUMNS if p[:2] == ("certifications", "firstAid")],
    ("certifications", "lossPreventionCertification"): [
        c for p, c in FIELD_COLUMNS if p[:2] == ("certifications", "lossPreventionCertification")
    ],
}

ENUM_COLUMNS = {
    "status": GuardStatus,
    "employment_type": EmploymentType,
}

# payload field name reported for each unique constraint
UNIQUE_FIELDS = (
    ("uq_guards_employee_id", "employee_id", "employeeId"),
    ("uq_guards_email", "email", "email"),
    ("uq_guards_license_number", "license_number", "certifications.securityLicense.number"),
)

_SEARCH_COLUMNS = ("first_name", "last_name", "employee_id", "email")

_MISSING = object()


def _lookup(payload: Any, path) -> Any:
    node = payload
    for key in path:
        if not isinstance(node, Mapping) or key not in node:
            return _MISSING
        node = node[key]
    return node


def _to_column(column: str, value: Any) -> Any:
    enum_cls = ENUM_COLUMNS.get(column)
    if enum_cls is None or value is None or isinstance(value, enum_cls):
        return value
    return enum_cls(value)


def _check(target: Guard, columns=None) -> None:
    # same input models the service loads requests with
    if columns is None:
        problems = validate_create(target.to_payload())
    else:
        problems = validate_update(target.to_payload(columns))
    if problems:
        raise RecordInvalid(problems)


@event.listens_for(Guard, "before_insert")
def _guard_before_insert(mapper, connection, target: Guard) -> None:
    _check(target)
    target.search_vector = build_search_vector(*(getattr(target, c) for c in _SEARCH_COLUMNS))


@event.listens_for(Guard, "before_update")
def _guard_before_update(mapper, connection, target: Guard) -> None:
    state = inspect(target)
    changed = [
        column for _path, column in FIELD_COLUMNS
        if state.attrs[column].history.has_changes()
    ]
    if not changed:
        return
    _check(target, changed)
    if any(c in changed for c in _SEARCH_COLUMNS):
        target.search_vector = build_search_vector(*(getattr(target, c) for c in _SEARCH_COLUMNS))
