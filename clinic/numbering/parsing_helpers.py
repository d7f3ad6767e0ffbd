import re

from clinic.domain.models import NO_NUMBER, NumberCategory, PatientNumber

# Two-letter prefixes must be tried before the bare ``P``.
_NUMBER_RE = re.compile(r"^(PA|PS|P)(\d{4,})$")

_CATEGORY_BY_PREFIX: dict[str, NumberCategory] = {
    category.prefix: category for category in NumberCategory
}


def parse_patient_number(text: str | None) -> PatientNumber | None:
    """Parse a rendered number like ``"PA0003"`` into a :class:`PatientNumber`.

    Returns ``None`` for the ``"-"`` sentinel, empty input, or anything that
    is not ``<prefix><digits>`` with at least four digits.
    """
    if not text:
        return None
    value = text.strip().upper()
    if value == NO_NUMBER:
        return None

    match = _NUMBER_RE.match(value)
    if not match:
        return None

    sequence = int(match.group(2))
    if sequence <= 0:
        return None
    return PatientNumber(category=_CATEGORY_BY_PREFIX[match.group(1)], sequence=sequence)


def format_patient_number(number: PatientNumber | None) -> str:
    """Render a number, or the ``"-"`` sentinel when there is none."""
    return number.render() if number else NO_NUMBER
