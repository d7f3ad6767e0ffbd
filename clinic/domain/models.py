import datetime as dt
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, TypeAdapter

NO_NUMBER = "-"
SEQUENCE_WIDTH = 4


class NumberCategory(str, Enum):
    """Mutually exclusive patient-number namespaces, one counter each."""

    VALIDATED = "validated"
    PENDING_OR_CANCELLED = "pending_or_cancelled"
    DELETED = "deleted"

    @property
    def prefix(self) -> str:
        return _PREFIXES[self]


_PREFIXES: dict[NumberCategory, str] = {
    NumberCategory.VALIDATED: "P",
    NumberCategory.PENDING_OR_CANCELLED: "PA",
    NumberCategory.DELETED: "PS",
}


class PatientNumber(BaseModel):
    """A ``(category, sequence)`` pair, rendered as e.g. ``PA0003``."""

    model_config = ConfigDict(frozen=True)

    category: NumberCategory
    sequence: int = Field(gt=0)

    def render(self) -> str:
        return f"{self.category.prefix}{self.sequence:0{SEQUENCE_WIDTH}d}"

    def __str__(self) -> str:
        return self.render()


class PatientStatus(str, Enum):
    """Effective status of a patient."""

    PENDING = "pending"
    UNSET = "-"
    VALIDATED = "validated"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"
    NO_SHOW = "no_show"
    DELETED = "deleted"


class AppointmentStatus(str, Enum):
    """Possible states of an appointment.

    ``PENDING`` moves to any of the outcome states; ``DELETED`` is a soft
    delete that keeps the record for history.
    """

    PENDING = "pending"
    VALIDATED = "validated"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"
    NO_SHOW = "no_show"
    DELETED = "deleted"

    def to_patient_status(self) -> PatientStatus:
        return PatientStatus(self.value)


class Patient(BaseModel):
    """The slice of a patient record this package reads and writes."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    status: PatientStatus = PatientStatus.PENDING
    number_assigned: str = NO_NUMBER


class _AppointmentBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    start: AwareDatetime
    duration_minutes: int = Field(gt=0)
    status: AppointmentStatus = AppointmentStatus.PENDING

    @property
    def end(self) -> dt.datetime:
        return self.start + dt.timedelta(minutes=self.duration_minutes)

    @property
    def is_deleted(self) -> bool:
        return self.status == AppointmentStatus.DELETED

    @property
    def exempt(self) -> bool:
        """Exempt blocks are not checked for slot availability."""
        return False

    @property
    def patient_ref(self) -> str | None:
        return None


class RegularVisit(_AppointmentBase):
    """A patient visit."""

    kind: Literal["visit"] = "visit"
    patient_id: str
    notes: str = ""

    @property
    def patient_ref(self) -> str | None:
        return self.patient_id


class LunchBreak(_AppointmentBase):
    """A break blocked out in the agenda."""

    kind: Literal["lunch_break"] = "lunch_break"

    @property
    def exempt(self) -> bool:
        return True


class OffSiteConsultation(_AppointmentBase):
    """Time spent consulting outside the clinic."""

    kind: Literal["off_site_consultation"] = "off_site_consultation"
    location: str = ""

    @property
    def exempt(self) -> bool:
        return True


Appointment = Annotated[
    Union[RegularVisit, LunchBreak, OffSiteConsultation],
    Field(discriminator="kind"),
]

APPOINTMENT_ADAPTER: TypeAdapter[Appointment] = TypeAdapter(Appointment)


class Shift(BaseModel):
    """A start-time change produced by a reflow."""

    model_config = ConfigDict(frozen=True)

    appointment_id: str
    new_start: AwareDatetime
