from mess.extensions import db
from utils.clock import get_clock
import enum

# Money is kept as fixed-point; balances may be negative (credits).
Money = db.Numeric(12, 2)


def local_now():
    return get_clock().now()


class MealType(enum.Enum):
    breakfast = "Breakfast"
    lunch = "Lunch"
    dinner = "Dinner"


class DayOfWeek(enum.Enum):
    monday = "Monday"
    tuesday = "Tuesday"
    wednesday = "Wednesday"
    thursday = "Thursday"
    friday = "Friday"
    saturday = "Saturday"
    sunday = "Sunday"

    @classmethod
    def for_date(cls, day):
        return list(cls)[day.weekday()]


class DisputeStatus(enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"


def enum_by_value(enum_class, raw):
    """Looks up an enum member by value or name, case-insensitively."""
    if isinstance(raw, enum_class):
        return raw
    text = (raw or "").strip().lower()
    for member in enum_class:
        if member.value.lower() == text or member.name == text:
            return member
    allowed = ", ".join(m.value for m in enum_class)
    raise ValueError(f"Invalid value '{raw}'. Expected one of: {allowed}")
