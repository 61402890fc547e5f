from datetime import date, datetime
from typing import Annotated, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from guard_api.services import validators
from guard_api.services.validators import (
    MAX_EXPIRY_WINDOW_DAYS,
    MAX_PAGE_SIZE,
    MAX_SEARCH_LIMIT,
    PROVINCES,
    Country,
    Email,
    EmployeeId,
    FutureTimestamp,
    HireDate,
    HourlyRate,
    ImageUrl,
    Notes,
    PersonName,
    Phone,
    PostalCode,
    RequiredText,
    Timestamp,
    optional,
    text,
    upper,
)

GuardStatusName = Literal["active", "inactive", "suspended", "terminated"]
EmploymentTypeName = Literal["full-time", "part-time", "contract"]
SortField = Literal["firstName", "lastName", "hireDate", "employeeId"]
Province = Annotated[Literal[PROVINCES], BeforeValidator(upper)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------------------------
# input: create
# -------------------------
# Field order is the order messages are reported in.

class AddressIn(CamelModel):
    street: text(100)
    city: text(50)
    province: Province
    postal_code: PostalCode
    country: Country = "Canada"


class EmergencyContactIn(CamelModel):
    name: text(100)
    relationship: text(50)
    phone: Phone


class EmploymentDetailsIn(CamelModel):
    hire_date: HireDate
    employment_type: EmploymentTypeName
    hourly_rate: HourlyRate


class SecurityLicenseIn(CamelModel):
    number: text(50)
    issue_date: Timestamp
    expiry_date: FutureTimestamp
    issuing_authority: text(100)


class CertificationIn(CamelModel):
    """First aid / loss prevention: every field optional, dates checked when given."""

    number: optional(text(50)) = None
    issue_date: optional(Timestamp) = None
    expiry_date: optional(FutureTimestamp) = None
    issuing_authority: optional(text(100)) = None


class CertificationsIn(CamelModel):
    security_license: SecurityLicenseIn
    first_aid: Optional[CertificationIn] = None
    loss_prevention_certification: Optional[CertificationIn] = None


class GuardCreate(CamelModel):
    employee_id: EmployeeId
    first_name: PersonName
    last_name: PersonName
    email: Email
    phone: Phone
    address: AddressIn
    emergency_contact: EmergencyContactIn
    employment_details: EmploymentDetailsIn
    certifications: CertificationsIn
    skills: Optional[list[RequiredText]] = None
    notes: optional(Notes) = None
    profile_image: optional(ImageUrl) = None


# -------------------------
# input: partial update
# -------------------------
# Omitted fields stay unset. Fields that are required on create default to
# None but still reject an explicit null.

class AddressPatch(CamelModel):
    street: text(100) = None
    city: text(50) = None
    province: Province = None
    postal_code: PostalCode = None
    country: Country = "Canada"


class EmergencyContactPatch(CamelModel):
    name: text(100) = None
    relationship: text(50) = None
    phone: Phone = None


class EmploymentDetailsPatch(CamelModel):
    hire_date: HireDate = None
    employment_type: EmploymentTypeName = None
    hourly_rate: HourlyRate = None
    status: GuardStatusName = None


class SecurityLicensePatch(CamelModel):
    number: text(50) = None
    issue_date: Timestamp = None
    expiry_date: FutureTimestamp = None
    issuing_authority: text(100) = None


class CertificationsPatch(CamelModel):
    security_license: SecurityLicensePatch = None
    first_aid: Optional[CertificationIn] = None
    loss_prevention_certification: Optional[CertificationIn] = None


class GuardUpdate(CamelModel):
    employee_id: EmployeeId = None
    first_name: PersonName = None
    last_name: PersonName = None
    email: Email = None
    phone: Phone = None
    address: AddressPatch = None
    emergency_contact: EmergencyContactPatch = None
    employment_details: EmploymentDetailsPatch = None
    certifications: CertificationsPatch = None
    skills: Optional[list[RequiredText]] = None
    notes: optional(Notes) = None
    profile_image: optional(ImageUrl) = None


class SiteAssignment(CamelModel):
    site_id: RequiredText


class SearchParams(CamelModel):
    q: RequiredText
    limit: int = Field(10, ge=1, le=MAX_SEARCH_LIMIT)


class ExpiryWindow(CamelModel):
    days: int = Field(30, ge=1, le=MAX_EXPIRY_WINDOW_DAYS)


def as_payload(model: BaseModel) -> dict:
    """Nested camelCase dict of the fields the caller actually supplied."""
    return model.model_dump(by_alias=True, exclude_unset=True)


def _problems(model, payload) -> list[str]:
    try:
        model.model_validate(payload)
    except ValidationError as exc:
        return validators.error_messages(exc)
    return []


def validate_create(payload) -> list[str]:
    """Messages for a full create payload, in field order; empty when acceptable."""
    return _problems(GuardCreate, payload)


def validate_update(payload) -> list[str]:
    """Same as validate_create, but only the supplied fields are checked."""
    return _problems(GuardUpdate, payload)


# -------------------------
# output
# -------------------------

class AddressOut(CamelModel):
    street: str
    city: str
    province: str
    postal_code: str
    country: str = "Canada"


class EmergencyContactOut(CamelModel):
    name: str
    relationship: str
    phone: str


class EmploymentDetailsOut(CamelModel):
    hire_date: date
    employment_type: EmploymentTypeName
    hourly_rate: float
    status: GuardStatusName


class CertificationOut(CamelModel):
    number: Optional[str] = None
    issue_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    issuing_authority: Optional[str] = None


class CertificationsOut(CamelModel):
    security_license: CertificationOut
    first_aid: Optional[CertificationOut] = None
    loss_prevention_certification: Optional[CertificationOut] = None


class GuardOut(CamelModel):
    id: UUID
    employee_id: str
    first_name: str
    last_name: str
    full_name: str
    email: str
    phone: str
    address: AddressOut
    emergency_contact: EmergencyContactOut
    employment_details: EmploymentDetailsOut
    certifications: CertificationsOut
    skills: list[str] = []
    assigned_sites: list[str] = []
    available_for_assignment: bool
    profile_image: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, guard) -> "GuardOut":
        def optional_cert(prefix: str) -> Optional[CertificationOut]:
            cert = CertificationOut(
                number=getattr(guard, f"{prefix}_number"),
                issue_date=getattr(guard, f"{prefix}_issue_date"),
                expiry_date=getattr(guard, f"{prefix}_expiry_date"),
                issuing_authority=getattr(guard, f"{prefix}_issuing_authority"),
            )
            return cert if any(v is not None for v in cert.model_dump().values()) else None

        return cls(
            id=guard.guard_id,
            employee_id=guard.employee_id,
            first_name=guard.first_name,
            last_name=guard.last_name,
            full_name=guard.full_name,
            email=guard.email,
            phone=guard.phone,
            address=AddressOut(
                street=guard.address_street,
                city=guard.address_city,
                province=guard.address_province,
                postal_code=guard.address_postal_code,
                country=guard.address_country or "Canada",
            ),
            emergency_contact=EmergencyContactOut(
                name=guard.emergency_contact_name,
                relationship=guard.emergency_contact_relationship,
                phone=guard.emergency_contact_phone,
            ),
            employment_details=EmploymentDetailsOut(
                hire_date=guard.hire_date,
                employment_type=guard.employment_type.value,
                hourly_rate=guard.hourly_rate,
                status=guard.status.value,
            ),
            certifications=CertificationsOut(
                security_license=CertificationOut(
                    number=guard.license_number,
                    issue_date=guard.license_issue_date,
                    expiry_date=guard.license_expiry_date,
                    issuing_authority=guard.license_issuing_authority,
                ),
                first_aid=optional_cert("first_aid"),
                loss_prevention_certification=optional_cert("loss_prevention"),
            ),
            skills=guard.skills,
            assigned_sites=guard.assigned_sites,
            available_for_assignment=guard.is_available_for_assignment(),
            profile_image=guard.profile_image,
            notes=guard.notes,
            created_at=guard.created_at,
            updated_at=guard.updated_at,
        )

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class GuardQuery(CamelModel):
    status: Optional[GuardStatusName] = None
    employment_type: Optional[EmploymentTypeName] = None
    skill: Optional[str] = None
    assigned_site: Optional[str] = None
    search: Optional[str] = None
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=MAX_PAGE_SIZE)
    sort_by: SortField = "firstName"
    sort_order: Literal["asc", "desc"] = "asc"


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_guards: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = -(-total // limit)
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_guards=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class EmploymentTypeCounts(CamelModel):
    full_time: int = 0
    part_time: int = 0
    contract: int = 0


class GuardStatistics(CamelModel):
    total: int = 0
    active: int = 0
    inactive: int = 0
    suspended: int = 0
    terminated: int = 0
    by_employment_type: EmploymentTypeCounts = EmploymentTypeCounts()
    expiring_certifications: int = 0
