import pytest

from clinic.domain.models import (
    NO_NUMBER,
    AppointmentStatus,
    NumberCategory,
    Patient,
    PatientStatus,
)
from clinic.numbering.lifecycle import PatientNumberLifecycle, parse_status, status_to_category
from clinic.numbering.pool import IdentifierPool


class TestStatusToCategory:
    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (PatientStatus.VALIDATED, NumberCategory.VALIDATED),
            (PatientStatus.CANCELLED, NumberCategory.PENDING_OR_CANCELLED),
            (PatientStatus.POSTPONED, NumberCategory.PENDING_OR_CANCELLED),
            (PatientStatus.NO_SHOW, NumberCategory.PENDING_OR_CANCELLED),
            (PatientStatus.UNSET, NumberCategory.PENDING_OR_CANCELLED),
            ("-", NumberCategory.PENDING_OR_CANCELLED),
            (PatientStatus.DELETED, NumberCategory.DELETED),
            (PatientStatus.PENDING, None),
            ("", None),
            (None, None),
            (AppointmentStatus.VALIDATED, NumberCategory.VALIDATED),
            (AppointmentStatus.PENDING, None),
        ],
        ids=[
            "validated",
            "cancelled",
            "postponed",
            "no-show",
            "unset",
            "unset-text",
            "deleted",
            "pending",
            "empty",
            "none",
            "appointment-validated",
            "appointment-pending",
        ],
    )
    def test_maps_status(self, status: object, expected: NumberCategory | None) -> None:
        assert status_to_category(status) == expected  # type: ignore[arg-type]

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Validé", PatientStatus.VALIDATED),
            ("Annulé", PatientStatus.CANCELLED),
            ("Reporté", PatientStatus.POSTPONED),
            ("Absent", PatientStatus.NO_SHOW),
            ("Supprimé", PatientStatus.DELETED),
            ("En attente", PatientStatus.PENDING),
            ("  VALIDATED ", PatientStatus.VALIDATED),
        ],
        ids=["valide", "annule", "reporte", "absent", "supprime", "en-attente", "padded-upper"],
    )
    def test_accepts_clinic_labels(self, label: str, expected: PatientStatus) -> None:
        assert parse_status(label) == expected

    def test_unknown_status_maps_to_none(self) -> None:
        assert parse_status("archived") is None
        assert status_to_category("archived") is None


class TestAssignOrUpdate:
    def test_pending_without_number_stays_unnumbered(
        self, lifecycle: PatientNumberLifecycle
    ) -> None:
        assert lifecycle.assign_or_update(NO_NUMBER, PatientStatus.PENDING) == NO_NUMBER

    def test_first_validation_mints_number(self, lifecycle: PatientNumberLifecycle) -> None:
        assert lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED) == "P0001"
        assert lifecycle.assign_or_update(None, PatientStatus.CANCELLED) == "PA0001"
        assert lifecycle.assign_or_update(None, PatientStatus.DELETED) == "PS0001"

    def test_same_category_returns_same_number(
        self, lifecycle: PatientNumberLifecycle, pool: IdentifierPool
    ) -> None:
        number = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.CANCELLED)

        first = lifecycle.assign_or_update(number, PatientStatus.CANCELLED)
        second = lifecycle.assign_or_update(first, PatientStatus.CANCELLED)

        assert first == second == number
        assert pool.highest_minted(NumberCategory.PENDING_OR_CANCELLED) == 1

    def test_statuses_sharing_category_do_not_churn(
        self, lifecycle: PatientNumberLifecycle
    ) -> None:
        number = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.CANCELLED)

        assert lifecycle.assign_or_update(number, PatientStatus.POSTPONED) == number
        assert lifecycle.assign_or_update(number, PatientStatus.NO_SHOW) == number

    def test_category_change_releases_old_number(
        self, lifecycle: PatientNumberLifecycle, pool: IdentifierPool
    ) -> None:
        validated = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED)

        cancelled = lifecycle.assign_or_update(validated, PatientStatus.CANCELLED)

        assert cancelled == "PA0001"
        assert pool.available(NumberCategory.VALIDATED) == [1]

    def test_reentry_reuses_released_number(self, lifecycle: PatientNumberLifecycle) -> None:
        number = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED)
        number = lifecycle.assign_or_update(number, PatientStatus.CANCELLED)

        assert lifecycle.assign_or_update(number, PatientStatus.VALIDATED) == "P0001"

    def test_back_to_pending_releases_number(
        self, lifecycle: PatientNumberLifecycle, pool: IdentifierPool
    ) -> None:
        number = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.POSTPONED)

        assert lifecycle.assign_or_update(number, PatientStatus.PENDING) == NO_NUMBER
        assert pool.available(NumberCategory.PENDING_OR_CANCELLED) == [1]

    def test_unknown_status_returns_sentinel(self, lifecycle: PatientNumberLifecycle) -> None:
        assert lifecycle.assign_or_update(NO_NUMBER, "archived") == NO_NUMBER

    def test_malformed_current_number_is_not_released(
        self, lifecycle: PatientNumberLifecycle, pool: IdentifierPool
    ) -> None:
        assert lifecycle.assign_or_update("X-12", PatientStatus.VALIDATED) == "P0001"
        assert all(pool.available(category) == [] for category in NumberCategory)

    def test_two_patients_never_share_a_number(self, lifecycle: PatientNumberLifecycle) -> None:
        a = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED)
        b = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED)
        a = lifecycle.assign_or_update(a, PatientStatus.CANCELLED)
        c = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED)

        assert len({a, b, c}) == 3
        assert c == "P0001"


class TestReleaseAndBootstrap:
    def test_release_number_returns_to_pool(
        self, lifecycle: PatientNumberLifecycle, pool: IdentifierPool
    ) -> None:
        number = lifecycle.assign_or_update(NO_NUMBER, PatientStatus.DELETED)

        lifecycle.release_number(number)
        lifecycle.release_number(NO_NUMBER)

        assert pool.available(NumberCategory.DELETED) == [1]

    def test_bootstrap_scans_patient_numbers(
        self, lifecycle: PatientNumberLifecycle, pool: IdentifierPool
    ) -> None:
        patients = [
            Patient(id="1", status=PatientStatus.VALIDATED, number_assigned="P0001"),
            Patient(id="2", status=PatientStatus.VALIDATED, number_assigned="P0004"),
            Patient(id="3", status=PatientStatus.CANCELLED, number_assigned="PA0002"),
            Patient(id="4", status=PatientStatus.PENDING, number_assigned=NO_NUMBER),
            Patient(id="5", status=PatientStatus.VALIDATED, number_assigned="garbage"),
        ]

        lifecycle.bootstrap(patients)

        assert pool.available(NumberCategory.VALIDATED) == [2, 3]
        assert pool.highest_minted(NumberCategory.VALIDATED) == 4
        assert pool.available(NumberCategory.PENDING_OR_CANCELLED) == [1]
        assert lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED) == "P0002"

    def test_rebuild_discards_previous_state(
        self, lifecycle: PatientNumberLifecycle, pool: IdentifierPool
    ) -> None:
        for _ in range(5):
            lifecycle.assign_or_update(NO_NUMBER, PatientStatus.VALIDATED)

        lifecycle.rebuild(
            [Patient(id="1", status=PatientStatus.VALIDATED, number_assigned="P0002")]
        )

        assert pool.highest_minted(NumberCategory.VALIDATED) == 2
        assert pool.available(NumberCategory.VALIDATED) == [1]
