"""Field rules for guard payloads.

The rules live on the pydantic input models in ``guard_api.schemas.guards``
as constrained types built from the pieces below. ``load`` validates a
payload against one of those models and turns a ``ValidationError`` into the
aggregated ``ValidationFailed`` callers expect: one readable message per
failing field, in field order.

The message tables map an error location (the camelCase alias path) to the
field's label and, where the field has one canonical wording, that message.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Any, Literal, Optional

from pydantic import AfterValidator, BeforeValidator, Field, StringConstraints, ValidationError
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from guard_api.core.errors import ValidationFailed

PROVINCES = ("AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT")
EMPLOYMENT_TYPES = ("full-time", "part-time", "contract")
STATUSES = ("active", "inactive", "suspended", "terminated")
SORT_FIELDS = ("firstName", "lastName", "hireDate", "employeeId")

MIN_HOURLY_RATE = 15
MAX_HOURLY_RATE = 100
MAX_NOTES_LENGTH = 1000
MAX_PAGE_SIZE = 100
MAX_SEARCH_LIMIT = 50
MAX_EXPIRY_WINDOW_DAYS = 365

EMPLOYEE_ID_PATTERN = r"^[A-Z0-9]{4,10}$"
PHONE_PATTERN = r"^(\+1|1)?[-.\s]?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}$"
POSTAL_CODE_PATTERN = r"^[A-Z][0-9][A-Z]\s?[0-9][A-Z][0-9]$"
PROFILE_IMAGE_PATTERN = r"(?i)^https?://.+\.(jpg|jpeg|png|gif)$"

# custom error types; RULE carries its final message
RULE = "guard_rule"
NOT_FUTURE = "not_future"


def utcnow() -> datetime:
    """Naive UTC now; every timestamp column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


# -------------------------
# validator functions used in the Annotated types
# -------------------------

def upper(value: Any) -> Any:
    return value.strip().upper() if isinstance(value, str) else value


def blank_to_none(value: Any) -> Any:
    return None if is_blank(value) else value


def default_country(value: Any) -> Any:
    return "Canada" if is_blank(value) else value


def numbers_only(value: Any) -> Any:
    # pydantic would coerce "25" and True into floats
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise PydanticCustomError("number_type", "Input should be a number")
    return value


def plain_email(value: str) -> str:
    # pydantic also accepts "Name <addr>"; only the bare address is allowed
    _name, email = validate_email(value)
    if email.lower() != value.lower():
        raise PydanticCustomError("value_error", "display names are not accepted")
    return email.lower()


def naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def in_future(value: datetime) -> datetime:
    if value <= utcnow():
        raise PydanticCustomError(NOT_FUTURE, "must be in the future")
    return value


def not_after_today(value: date) -> date:
    if value > utcnow().date():
        raise PydanticCustomError(RULE, "Hire date cannot be in the future")
    return value


# -------------------------
# constrained types
# -------------------------

def text(max_length: int, min_length: int = 1):
    return Annotated[str, StringConstraints(strip_whitespace=True, min_length=min_length, max_length=max_length)]


def optional(annotation):
    """Nullable field where a blank string counts as absent."""
    return Annotated[Optional[annotation], BeforeValidator(blank_to_none)]


EmployeeId = Annotated[str, StringConstraints(pattern=EMPLOYEE_ID_PATTERN), BeforeValidator(upper)]
PersonName = text(50, min_length=2)
Email = Annotated[str, StringConstraints(strip_whitespace=True), AfterValidator(plain_email)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=PHONE_PATTERN)]
PostalCode = Annotated[str, StringConstraints(pattern=POSTAL_CODE_PATTERN), BeforeValidator(upper)]
HourlyRate = Annotated[float, Field(ge=MIN_HOURLY_RATE, le=MAX_HOURLY_RATE), BeforeValidator(numbers_only)]
HireDate = Annotated[date, AfterValidator(not_after_today)]
Timestamp = Annotated[datetime, AfterValidator(naive_utc)]
FutureTimestamp = Annotated[datetime, AfterValidator(naive_utc), AfterValidator(in_future)]
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
Country = Annotated[Literal["Canada"], BeforeValidator(default_country)]
ImageUrl = Annotated[str, StringConstraints(strip_whitespace=True, pattern=PROFILE_IMAGE_PATTERN)]
Notes = Annotated[str, StringConstraints(max_length=MAX_NOTES_LENGTH)]


# -------------------------
# message tables
# -------------------------

BODY_INVALID = "Request body must be an object"

# section path -> (missing message or None when optional, not-an-object message)
SECTIONS = {
    ("address",): ("Address is required", "Address must be an object"),
    ("emergencyContact",): ("Emergency contact is required", "Emergency contact must be an object"),
    ("employmentDetails",): ("Employment details are required", "Employment details must be an object"),
    ("certifications",): ("Certifications are required", "Certifications must be an object"),
    ("certifications", "securityLicense"): ("Security license is required", "Security license must be an object"),
    ("certifications", "firstAid"): (None, "First aid certification must be an object"),
    ("certifications", "lossPreventionCertification"): (None, "Loss prevention certification must be an object"),
}

# field path -> (label, canonical message or None to word it from the error type)
GUARD_FIELDS = {
    ("employeeId",): ("Employee ID", "Employee ID must be 4-10 alphanumeric characters"),
    ("firstName",): ("First name", "First name must be between 2-50 characters"),
    ("lastName",): ("Last name", "Last name must be between 2-50 characters"),
    ("email",): ("Email", "Please enter a valid email address"),
    ("phone",): ("Phone", "Please enter a valid phone number"),
    ("address", "street"): ("Street address", None),
    ("address", "city"): ("City", None),
    ("address", "province"): ("Province", "Please enter a valid Canadian province abbreviation"),
    ("address", "postalCode"): ("Postal code", "Please enter a valid Canadian postal code"),
    ("address", "country"): ("Country", "Country must be Canada"),
    ("emergencyContact", "name"): ("Emergency contact name", None),
    ("emergencyContact", "relationship"): ("Emergency contact relationship", "Relationship cannot exceed 50 characters"),
    ("emergencyContact", "phone"): ("Emergency contact phone", "Please enter a valid emergency contact phone number"),
    ("employmentDetails", "hireDate"): ("Hire date", None),
    ("employmentDetails", "employmentType"): (
        "Employment type", "Employment type must be full-time, part-time, or contract",
    ),
    ("employmentDetails", "hourlyRate"): ("Hourly rate", "Hourly rate must be between $15.00 and $100.00"),
    ("employmentDetails", "status"): ("Status", "Status must be active, inactive, suspended, or terminated"),
    ("skills",): ("Skills", "Skills must be an array"),
    ("notes",): ("Notes", None),
    ("profileImage",): ("Profile image", "Profile image must be a valid image URL"),
}
for _key, _label in (
    ("securityLicense", "Security license"),
    ("firstAid", "First aid"),
    ("lossPreventionCertification", "Loss prevention certification"),
):
    GUARD_FIELDS[("certifications", _key, "number")] = (f"{_label} number", None)
    GUARD_FIELDS[("certifications", _key, "issueDate")] = (f"{_label} issue date", None)
    GUARD_FIELDS[("certifications", _key, "expiryDate")] = (f"{_label} expiry date", None)
    GUARD_FIELDS[("certifications", _key, "issuingAuthority")] = (f"{_label} issuing authority", None)

QUERY_FIELDS = {
    ("status",): GUARD_FIELDS[("employmentDetails", "status")],
    ("employmentType",): GUARD_FIELDS[("employmentDetails", "employmentType")],
    ("page",): ("Page", "Page must be a positive integer"),
    ("limit",): ("Limit", "Limit must be between 1 and 100"),
    ("sortBy",): ("SortBy", "SortBy must be one of: firstName, lastName, hireDate, employeeId"),
    ("sortOrder",): ("SortOrder", "SortOrder must be asc or desc"),
}

SEARCH_FIELDS = {
    ("q",): ("Search term (q)", "Search term (q) is required"),
    ("limit",): ("Limit", "Limit must be between 1 and 50"),
}

EXPIRY_FIELDS = {
    ("days",): ("Days parameter", "Days parameter must be between 1 and 365"),
}

SITE_FIELDS = {
    ("siteId",): ("Site ID", "Site ID is required"),
}


def error_message(error: dict, fields: dict) -> str:
    loc = tuple(error["loc"])
    kind = error["type"]

    if kind == RULE:
        return error["msg"]
    if not loc:
        return BODY_INVALID
    if loc in SECTIONS:
        missing, invalid = SECTIONS[loc]
        if missing and (kind == "missing" or error.get("input") is None):
            return missing
        return invalid
    if loc[0] == "skills" and len(loc) == 2:
        return f"Skill at index {loc[1]} must be a non-empty string"

    if loc not in fields:
        return error["msg"]
    label, message = fields[loc]
    if kind == "missing" or is_blank(error.get("input")):
        return f"{label} is required"
    if kind == NOT_FUTURE:
        return f"{label} must be in the future"
    if message:
        return message
    if kind.startswith("date"):
        return f"{label} must be a valid date"
    if kind == "string_too_long":
        return f"{label} cannot exceed {error['ctx']['max_length']} characters"
    if kind == "string_type":
        return f"{label} must be a string"
    return f"{label} is invalid"


def error_messages(exc: ValidationError, fields: dict = GUARD_FIELDS) -> list[str]:
    messages: list[str] = []
    for error in exc.errors():
        message = error_message(error, fields)
        if message not in messages:
            messages.append(message)
    return messages


def load(model, data: Any, fields: dict = GUARD_FIELDS, prefix: str = "Validation failed"):
    """Validate ``data`` into ``model``; failures become one ValidationFailed."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(error_messages(exc, fields), prefix=prefix) from exc
