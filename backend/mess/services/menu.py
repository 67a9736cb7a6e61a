from decimal import Decimal, InvalidOperation

from mess.extensions import db
from mess.errors import NotFound, ValidationError
from mess.models import DayOfWeek, MealType, MenuItem, enum_by_value
from utils.clock import get_clock
from utils.db import atomic

MEAL_ORDER = {MealType.breakfast: 0, MealType.lunch: 1, MealType.dinner: 2}
DAY_ORDER = {day: index for index, day in enumerate(DayOfWeek)}


def parse_meal_type(raw):
    try:
        return enum_by_value(MealType, raw)
    except ValueError as exc:
        raise ValidationError(str(exc))


def parse_day(raw):
    try:
        return enum_by_value(DayOfWeek, raw)
    except ValueError as exc:
        raise ValidationError(str(exc))


def _sorted(items):
    return sorted(items, key=lambda item: (DAY_ORDER[item.day_of_week], MEAL_ORDER[item.meal_type], item.item_name))


def list_menu(day=None, meal_type=None, include_inactive=False):
    query = MenuItem.query
    if not include_inactive:
        query = query.filter(MenuItem.is_active.is_(True))
    if day:
        query = query.filter(MenuItem.day_of_week == parse_day(day))
    if meal_type:
        query = query.filter(MenuItem.meal_type == parse_meal_type(meal_type))
    return _sorted(query.all())


def todays_menu():
    today = DayOfWeek.for_date(get_clock().today())
    return today, list_menu(day=today)


def get_item(item_id):
    item = db.session.get(MenuItem, item_id)
    if item is None or not item.is_active:
        raise NotFound("Menu item not found")
    return item


def _parse_rate(value):
    try:
        rate = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("rate_per_serving must be a number")
    if not rate.is_finite() or rate < 0 or rate > 10000:
        raise ValidationError("rate_per_serving must be between 0 and 10000")
    return rate.quantize(Decimal("0.01"))


def _apply(item, data, partial):
    if "item_name" in data or not partial:
        name = (data.get("item_name") or "").strip()
        if not name:
            raise ValidationError("item_name is required")
        if len(name) > 100:
            raise ValidationError("item_name must be at most 100 characters")
        item.item_name = name
    if "description" in data:
        item.description = (data.get("description") or "").strip() or None
    if "meal_type" in data or not partial:
        item.meal_type = parse_meal_type(data.get("meal_type"))
    if "day_of_week" in data or not partial:
        item.day_of_week = parse_day(data.get("day_of_week"))
    if "rate_per_serving" in data or not partial:
        item.rate_per_serving = _parse_rate(data.get("rate_per_serving"))


def create_item(data):
    item = MenuItem(is_active=True)
    _apply(item, data, partial=False)
    with atomic():
        db.session.add(item)
    return item


def update_item(item_id, data):
    with atomic():
        item = get_item(item_id)
        _apply(item, data, partial=True)
    return item


def deactivate_item(item_id):
    """Menu items are hidden, never removed."""
    with atomic():
        item = get_item(item_id)
        item.is_active = False
    return item
