"""
Tests for GuardService lifecycle, site assignment, read queries and statistics.
"""

import uuid
from datetime import datetime

import pytest
from sqlalchemy import func, select

from guard_api.core.errors import (
    Conflict,
    InvalidStateTransition,
    MalformedIdentifier,
    NotFound,
    RecordInvalid,
    ValidationFailed,
)
from guard_api.models.guard import GuardStatus
from guard_api.models.guard_site_assignment import GuardSiteAssignment
from guard_api.models.guard_skill import GuardSkill
from guard_api.services.guard_service import parse_guard_query

from conftest import expire_license, iso_in, make_guard_payload


def _with_license_expiry(n, days, **overrides):
    payload = make_guard_payload(n, **overrides)
    payload["certifications"]["securityLicense"]["expiryDate"] = iso_in(days)
    return payload


class TestCreateGuard:
    def test_create_round_trips_fields(self, service):
        payload = make_guard_payload(profileImage="https://cdn.guardco.ca/p/1.jpg")
        payload["certifications"]["firstAid"] = {
            "number": "FA-100",
            "issueDate": "2024-02-01",
            "expiryDate": iso_in(200),
            "issuingAuthority": "St. John Ambulance",
        }
        created = service.create_guard(payload)
        guard = service.get_guard(created.guard_id)

        assert guard.employee_id == "GRD0001"
        assert guard.full_name == "John Doe"
        assert guard.email == "guard1@guardco.ca"
        assert guard.address_city == "Toronto"
        assert guard.address_postal_code == "M5H 2N2"
        assert guard.emergency_contact_name == "Jane Doe"
        assert guard.hire_date.isoformat() == "2024-01-15"
        assert guard.hourly_rate == 25.0
        assert guard.license_number == "SL00000001"
        assert guard.license_expiry_date == datetime.fromisoformat(payload["certifications"]["securityLicense"]["expiryDate"])
        assert guard.first_aid_number == "FA-100"
        assert guard.loss_prevention_number is None
        assert guard.skills == ["Patrol", "Customer Service"]
        assert guard.assigned_sites == []
        assert guard.profile_image == "https://cdn.guardco.ca/p/1.jpg"
        assert guard.notes == "Test guard"
        assert guard.created_at is not None
        assert guard.updated_at is not None

    def test_new_guard_is_always_active(self, service):
        payload = make_guard_payload()
        payload["employmentDetails"]["status"] = "terminated"
        guard = service.create_guard(payload)
        assert guard.status == GuardStatus.active
        assert guard.is_available_for_assignment()

    def test_fields_are_normalized(self, service):
        payload = make_guard_payload(employeeId="grd0009", email="  John.Doe@GuardCo.ca ")
        payload["address"]["postalCode"] = "m5h 2n2"
        payload["address"]["province"] = "on"
        guard = service.create_guard(payload)
        assert guard.employee_id == "GRD0009"
        assert guard.email == "john.doe@guardco.ca"
        assert guard.address_postal_code == "M5H 2N2"
        assert guard.address_province == "ON"

    def test_duplicate_skills_are_kept_in_order(self, service):
        guard = service.create_guard(make_guard_payload(skills=["Patrol", "CCTV", "Patrol"]))
        assert guard.skills == ["Patrol", "CCTV", "Patrol"]

    def test_validation_failure_is_aggregated(self, service):
        payload = make_guard_payload()
        del payload["firstName"]
        payload["employmentDetails"]["hourlyRate"] = 10

        with pytest.raises(ValidationFailed) as excinfo:
            service.create_guard(payload)

        assert excinfo.value.messages == [
            "First name is required",
            "Hourly rate must be between $15.00 and $100.00",
        ]
        assert excinfo.value.status_code == 400
        assert excinfo.value.message.startswith("Validation failed: ")

    def test_duplicate_employee_id_is_case_insensitive(self, service):
        service.create_guard(make_guard_payload(1, employeeId="GRD0001"))
        with pytest.raises(Conflict) as excinfo:
            service.create_guard(make_guard_payload(2, employeeId="grd0001"))
        assert excinfo.value.field == "employeeId"
        assert excinfo.value.message == "employeeId already exists"
        assert excinfo.value.status_code == 409

    def test_duplicate_email(self, service):
        service.create_guard(make_guard_payload(1))
        with pytest.raises(Conflict) as excinfo:
            service.create_guard(make_guard_payload(2, email="GUARD1@guardco.ca"))
        assert excinfo.value.field == "email"

    def test_display_name_email_is_rejected(self, service):
        with pytest.raises(ValidationFailed) as excinfo:
            service.create_guard(make_guard_payload(1, email="Bob <guard1@guardco.ca>"))
        assert excinfo.value.messages == ["Please enter a valid email address"]

        service.create_guard(make_guard_payload(1))
        with pytest.raises(Conflict) as excinfo:
            service.create_guard(make_guard_payload(2, email="Guard1@GuardCo.ca"))
        assert excinfo.value.field == "email"

    def test_duplicate_license_number(self, service):
        service.create_guard(make_guard_payload(1))
        payload = make_guard_payload(2)
        payload["certifications"]["securityLicense"]["number"] = "SL00000001"
        with pytest.raises(Conflict) as excinfo:
            service.create_guard(payload)
        assert excinfo.value.field == "certifications.securityLicense.number"

    def test_session_usable_after_conflict(self, service):
        service.create_guard(make_guard_payload(1))
        with pytest.raises(Conflict):
            service.create_guard(make_guard_payload(2, employeeId="GRD0001"))
        guard = service.create_guard(make_guard_payload(3))
        assert guard.employee_id == "GRD0003"


class TestLookups:
    def test_malformed_id(self, service):
        with pytest.raises(MalformedIdentifier) as excinfo:
            service.get_guard("not-a-uuid")
        assert excinfo.value.message == "Invalid guard ID format"

    def test_unknown_id(self, service):
        with pytest.raises(NotFound) as excinfo:
            service.get_guard(str(uuid.uuid4()))
        assert excinfo.value.message == "Guard not found"

    def test_by_employee_id_ignores_case(self, service):
        created = service.create_guard(make_guard_payload())
        assert service.get_guard_by_employee_id("grd0001").guard_id == created.guard_id

    def test_by_employee_id_missing(self, service):
        with pytest.raises(NotFound):
            service.get_guard_by_employee_id("NOPE9999")


class TestUpdateGuard:
    def test_partial_nested_update_keeps_siblings(self, service):
        guard = service.create_guard(make_guard_payload())
        updated = service.update_guard(guard.guard_id, {"address": {"city": "Ottawa"}})
        assert updated.address_city == "Ottawa"
        assert updated.address_street == "123 King St W"
        assert updated.address_province == "ON"

    def test_update_replaces_skills(self, service):
        guard = service.create_guard(make_guard_payload())
        updated = service.update_guard(guard.guard_id, {"skills": ["CCTV"]})
        assert updated.skills == ["CCTV"]
        assert service.db.scalar(select(func.count()).select_from(GuardSkill)) == 1

    def test_invalid_update_is_rejected(self, service):
        guard = service.create_guard(make_guard_payload())
        with pytest.raises(ValidationFailed) as excinfo:
            service.update_guard(guard.guard_id, {"employmentDetails": {"hourlyRate": 5}})
        assert excinfo.value.messages == ["Hourly rate must be between $15.00 and $100.00"]
        assert service.get_guard(guard.guard_id).hourly_rate == 25.0

    def test_update_into_duplicate_email(self, service):
        service.create_guard(make_guard_payload(1))
        second = service.create_guard(make_guard_payload(2))
        with pytest.raises(Conflict) as excinfo:
            service.update_guard(second.guard_id, {"email": "guard1@guardco.ca"})
        assert excinfo.value.field == "email"

    def test_malformed_id_wins_over_bad_payload(self, service):
        with pytest.raises(MalformedIdentifier):
            service.update_guard("123", {"employmentDetails": {"hourlyRate": 5}})

    def test_unknown_guard(self, service):
        with pytest.raises(NotFound):
            service.update_guard(uuid.uuid4(), {"notes": "hello"})

    def test_server_owned_fields_are_ignored(self, service):
        guard = service.create_guard(make_guard_payload())
        updated = service.update_guard(guard.guard_id, {"assignedSites": ["SITE-9"], "notes": "moved"})
        assert updated.assigned_sites == []
        assert updated.notes == "moved"

    def test_optional_certification_can_be_removed(self, service):
        payload = make_guard_payload()
        payload["certifications"]["firstAid"] = {"number": "FA-1", "expiryDate": iso_in(100)}
        guard = service.create_guard(payload)

        updated = service.update_guard(guard.guard_id, {"certifications": {"firstAid": None}})
        assert updated.first_aid_number is None
        assert updated.first_aid_expiry_date is None
        assert updated.license_number == "SL00000001"

    def test_leaving_active_status_clears_sites(self, service):
        guard = service.create_guard(make_guard_payload())
        service.assign_to_site(guard.guard_id, "SITE-1")

        updated = service.update_guard(guard.guard_id, {"employmentDetails": {"status": "suspended"}})
        assert updated.status == GuardStatus.suspended
        assert updated.assigned_sites == []

    def test_terminated_guard_can_be_reactivated(self, service):
        guard = service.create_guard(make_guard_payload())
        service.terminate_guard(guard.guard_id)
        updated = service.update_guard(guard.guard_id, {"employmentDetails": {"status": "active"}})
        assert updated.status == GuardStatus.active

    def test_flush_hooks_reject_direct_writes(self, service):
        guard = service.create_guard(make_guard_payload())
        guard.hourly_rate = 5.0
        with pytest.raises(RecordInvalid) as excinfo:
            service.db.commit()
        assert excinfo.value.messages == ["Hourly rate must be between $15.00 and $100.00"]
        service.db.rollback()

    def test_flush_hooks_reject_display_name_email(self, service):
        service.create_guard(make_guard_payload(1))
        second = service.create_guard(make_guard_payload(2))
        second.email = "Bob <guard1@guardco.ca>"
        with pytest.raises(RecordInvalid) as excinfo:
            service.db.commit()
        assert excinfo.value.messages == ["Please enter a valid email address"]
        service.db.rollback()

    def test_flush_hook_errors_surface_as_validation_errors(self, service):
        guard = service.create_guard(make_guard_payload())
        guard.first_name = "X"
        with pytest.raises(ValidationFailed) as excinfo:
            service._commit()
        assert excinfo.value.message == "Validation Error: First name must be between 2-50 characters"


class TestTerminateAndDelete:
    def test_terminate_clears_sites(self, service):
        guard = service.create_guard(make_guard_payload())
        service.assign_to_site(guard.guard_id, "SITE-1")
        service.assign_to_site(guard.guard_id, "SITE-2")

        terminated = service.terminate_guard(guard.guard_id)
        assert terminated.status == GuardStatus.terminated
        assert terminated.assigned_sites == []
        assert not terminated.is_available_for_assignment()

    def test_terminate_is_idempotent(self, service):
        guard = service.create_guard(make_guard_payload())
        service.terminate_guard(guard.guard_id)
        again = service.terminate_guard(guard.guard_id)
        assert again.status == GuardStatus.terminated

    def test_terminate_unknown(self, service):
        with pytest.raises(NotFound):
            service.terminate_guard(uuid.uuid4())

    def test_permanent_delete(self, service):
        guard = service.create_guard(make_guard_payload())
        service.assign_to_site(guard.guard_id, "SITE-1")
        guard_id = guard.guard_id

        assert service.delete_guard_permanently(guard_id) is True
        assert service.delete_guard_permanently(guard_id) is False
        with pytest.raises(NotFound):
            service.get_guard(guard_id)
        assert service.db.scalar(select(func.count()).select_from(GuardSkill)) == 0
        assert service.db.scalar(select(func.count()).select_from(GuardSiteAssignment)) == 0

    def test_permanent_delete_malformed_id(self, service):
        with pytest.raises(MalformedIdentifier):
            service.delete_guard_permanently("abc")


class TestSiteAssignment:
    def test_assign_and_remove(self, service):
        guard = service.create_guard(make_guard_payload())

        assigned = service.assign_to_site(guard.guard_id, " SITE-1 ")
        assert assigned.assigned_sites == ["SITE-1"]

        removed = service.remove_from_site(guard.guard_id, "SITE-1")
        assert removed.assigned_sites == []
        assert removed.status == GuardStatus.active

    def test_assign_twice(self, service):
        guard = service.create_guard(make_guard_payload())
        service.assign_to_site(guard.guard_id, "SITE-1")
        with pytest.raises(InvalidStateTransition) as excinfo:
            service.assign_to_site(guard.guard_id, "SITE-1")
        assert excinfo.value.message == "Guard is already assigned to this site"
        assert service.get_guard(guard.guard_id).assigned_sites == ["SITE-1"]

    def test_assign_inactive_guard(self, service):
        guard = service.create_guard(make_guard_payload())
        service.update_guard(guard.guard_id, {"employmentDetails": {"status": "inactive"}})
        with pytest.raises(InvalidStateTransition) as excinfo:
            service.assign_to_site(guard.guard_id, "SITE-1")
        assert excinfo.value.message == "Cannot assign inactive guard to site"

    def test_assign_with_expired_license(self, service, db):
        guard = service.create_guard(make_guard_payload())
        expire_license(db, guard.guard_id)
        with pytest.raises(InvalidStateTransition) as excinfo:
            service.assign_to_site(guard.guard_id, "SITE-1")
        assert excinfo.value.message == "Guard is not available for assignment"
        assert service.get_guard(guard.guard_id).assigned_sites == []

    def test_assign_requires_site(self, service):
        guard = service.create_guard(make_guard_payload())
        with pytest.raises(ValidationFailed) as excinfo:
            service.assign_to_site(guard.guard_id, "  ")
        assert excinfo.value.messages == ["Site ID is required"]

    def test_assign_unknown_guard(self, service):
        with pytest.raises(NotFound):
            service.assign_to_site(uuid.uuid4(), "SITE-1")

    def test_remove_absent_site_is_a_no_op(self, service):
        guard = service.create_guard(make_guard_payload())
        service.assign_to_site(guard.guard_id, "SITE-1")
        result = service.remove_from_site(guard.guard_id, "SITE-2")
        assert result.assigned_sites == ["SITE-1"]

    def test_remove_from_unknown_guard(self, service):
        with pytest.raises(NotFound):
            service.remove_from_site(uuid.uuid4(), "SITE-1")


class TestListGuards:
    def test_pagination(self, service):
        for n in range(1, 26):
            service.create_guard(make_guard_payload(n))

        seen = []
        for page, expected in ((1, 10), (2, 10), (3, 5)):
            guards, pagination = service.list_guards(parse_guard_query({"page": str(page), "limit": "10"}))
            assert len(guards) == expected
            assert pagination.current_page == page
            assert pagination.total_pages == 3
            assert pagination.total_guards == 25
            assert pagination.has_next is (page < 3)
            assert pagination.has_prev is (page > 1)
            seen.extend(g.guard_id for g in guards)

        assert len(set(seen)) == 25

    def test_page_past_the_end(self, service):
        service.create_guard(make_guard_payload())
        guards, pagination = service.list_guards(parse_guard_query({"page": "5"}))
        assert guards == []
        assert pagination.total_guards == 1
        assert pagination.has_next is False

    def test_huge_page_number_returns_empty_page(self, service):
        service.create_guard(make_guard_payload())
        guards, pagination = service.list_guards(parse_guard_query({"page": str(10 ** 18)}))
        assert guards == []
        assert pagination.current_page == 10 ** 18
        assert pagination.total_guards == 1
        assert pagination.has_prev is True

    def test_empty_collection(self, service):
        guards, pagination = service.list_guards(parse_guard_query({}))
        assert guards == []
        assert pagination.total_pages == 0
        assert pagination.has_prev is False

    def test_filters(self, service):
        a = service.create_guard(make_guard_payload(1, firstName="Alice", skills=["CCTV"]))
        b = service.create_guard(make_guard_payload(2, firstName="Bruno", skills=["Patrol"]))
        payload = make_guard_payload(3, firstName="Chloe", skills=["Driving"])
        payload["employmentDetails"]["employmentType"] = "part-time"
        c = service.create_guard(payload)
        service.assign_to_site(b.guard_id, "SITE-7")
        service.terminate_guard(a.guard_id)

        def ids(**params):
            guards, _ = service.list_guards(parse_guard_query(params))
            return {g.guard_id for g in guards}

        assert ids(status="terminated") == {a.guard_id}
        assert ids(employmentType="part-time") == {c.guard_id}
        assert ids(skill="CCTV") == {a.guard_id}
        assert ids(assignedSite="SITE-7") == {b.guard_id}
        assert ids(search="chlo") == {c.guard_id}
        assert ids(search="GRD0002") == {b.guard_id}
        assert ids(status="active", skill="Patrol") == {b.guard_id}

    def test_search_treats_wildcards_literally(self, service):
        service.create_guard(make_guard_payload(1))
        guards, _ = service.list_guards(parse_guard_query({"search": "%"}))
        assert guards == []

    def test_sorting(self, service):
        for n, (first, hired) in enumerate((("Mia", "2020-05-01"), ("Ana", "2023-01-10"), ("Zoe", "2021-07-15")), 1):
            payload = make_guard_payload(n, firstName=first)
            payload["employmentDetails"]["hireDate"] = hired
            service.create_guard(payload)

        guards, _ = service.list_guards(parse_guard_query({}))
        assert [g.first_name for g in guards] == ["Ana", "Mia", "Zoe"]

        guards, _ = service.list_guards(parse_guard_query({"sortBy": "hireDate", "sortOrder": "desc"}))
        assert [g.first_name for g in guards] == ["Ana", "Zoe", "Mia"]

    def test_bad_query(self):
        with pytest.raises(ValidationFailed) as excinfo:
            parse_guard_query({"limit": "500"})
        assert excinfo.value.message == "Query validation failed: Limit must be between 1 and 100"


class TestReports:
    def test_expiring_certifications(self, service):
        soon = service.create_guard(_with_license_expiry(1, 10))
        service.create_guard(_with_license_expiry(2, 45))

        assert [g.guard_id for g in service.find_expiring_certifications(30)] == [soon.guard_id]
        assert len(service.find_expiring_certifications("60")) == 2

    def test_expiring_first_aid_counts(self, service):
        payload = make_guard_payload(1)
        payload["certifications"]["firstAid"] = {"number": "FA-1", "expiryDate": iso_in(5)}
        guard = service.create_guard(payload)
        assert [g.guard_id for g in service.find_expiring_certifications()] == [guard.guard_id]

    def test_expiring_ignores_inactive_guards(self, service):
        guard = service.create_guard(_with_license_expiry(1, 10))
        service.terminate_guard(guard.guard_id)
        assert service.find_expiring_certifications(30) == []

    def test_expiring_window_bounds(self, service):
        with pytest.raises(ValidationFailed) as excinfo:
            service.find_expiring_certifications(400)
        assert excinfo.value.messages == ["Days parameter must be between 1 and 365"]

    def test_by_skill_returns_active_only(self, service):
        a = service.create_guard(make_guard_payload(1, skills=["First Aid"]))
        b = service.create_guard(make_guard_payload(2, skills=["First Aid", "CCTV"]))
        service.create_guard(make_guard_payload(3, skills=["CCTV"]))
        service.terminate_guard(b.guard_id)

        assert [g.guard_id for g in service.find_by_skill("First Aid")] == [a.guard_id]

    def test_available(self, service, db):
        ok = service.create_guard(make_guard_payload(1))
        expired = service.create_guard(make_guard_payload(2))
        suspended = service.create_guard(make_guard_payload(3))
        expire_license(db, expired.guard_id)
        service.update_guard(suspended.guard_id, {"employmentDetails": {"status": "suspended"}})

        assert [g.guard_id for g in service.find_available()] == [ok.guard_id]

    def test_search_ranks_by_matched_tokens(self, service):
        both = service.create_guard(make_guard_payload(1, firstName="Jean", lastName="Tremblay"))
        service.create_guard(make_guard_payload(2, firstName="Marc", lastName="Tremblay"))
        service.create_guard(make_guard_payload(3, firstName="Jean", lastName="Côté"))
        service.create_guard(make_guard_payload(4, firstName="Sofia", lastName="Rossi"))

        results = service.search("Jean Tremblay")
        assert len(results) == 3
        assert results[0].guard_id == both.guard_id

    def test_search_ignores_accents(self, service):
        guard = service.create_guard(make_guard_payload(1, firstName="Jean", lastName="Côté"))
        assert [g.guard_id for g in service.search("cote")] == [guard.guard_id]
        assert [g.guard_id for g in service.search("CÔTÉ")] == [guard.guard_id]

    def test_search_matches_non_latin_names(self, service):
        guard = service.create_guard(make_guard_payload(1, firstName="Иван", lastName="Петров"))
        service.create_guard(make_guard_payload(2))
        assert [g.guard_id for g in service.search("иван")] == [guard.guard_id]
        assert [g.guard_id for g in service.search("ПЕТРОВ")] == [guard.guard_id]

    def test_search_limit(self, service):
        for n in range(1, 6):
            service.create_guard(make_guard_payload(n, lastName="Tremblay"))
        assert len(service.search("tremblay", 3)) == 3

    def test_search_requires_term(self, service):
        with pytest.raises(ValidationFailed) as excinfo:
            service.search("  ", "0")
        assert excinfo.value.messages == ["Search term (q) is required", "Limit must be between 1 and 50"]

    def test_statistics(self, service):
        service.create_guard(_with_license_expiry(1, 10))
        part_time = make_guard_payload(2)
        part_time["employmentDetails"]["employmentType"] = "part-time"
        suspended = service.create_guard(part_time)
        contract = make_guard_payload(3)
        contract["employmentDetails"]["employmentType"] = "contract"
        terminated = service.create_guard(contract)
        service.create_guard(make_guard_payload(4))

        service.update_guard(suspended.guard_id, {"employmentDetails": {"status": "suspended"}})
        service.terminate_guard(terminated.guard_id)

        stats = service.get_statistics()
        assert stats.total == 4
        assert stats.active == 2
        assert stats.inactive == 0
        assert stats.suspended == 1
        assert stats.terminated == 1
        assert stats.by_employment_type.full_time == 2
        assert stats.by_employment_type.part_time == 1
        assert stats.by_employment_type.contract == 1
        assert stats.expiring_certifications == 1

    def test_statistics_on_empty_collection(self, service):
        stats = service.get_statistics()
        assert stats.total == 0
        assert stats.by_employment_type.contract == 0
        assert stats.expiring_certifications == 0
