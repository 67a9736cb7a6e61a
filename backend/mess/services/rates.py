import logging
from collections import namedtuple
from decimal import Decimal, InvalidOperation

from mess.extensions import db
from mess.errors import ConfigurationMissing, ValidationError
from mess.models import BillingConfiguration, SINGLETON_ID
from utils.clock import get_clock
from utils.db import atomic

logger = logging.getLogger(__name__)

Rates = namedtuple("Rates", ["breakfast", "lunch", "dinner", "monthly_water_total"])

MAX_MEAL_RATE = Decimal("10000")
MAX_WATER_TOTAL = Decimal("100000")


def get_configuration():
    return db.session.get(BillingConfiguration, SINGLETON_ID)


def get_rates():
    """
    Current per-meal rates and the shared monthly water total.

    Raises ConfigurationMissing until an admin has saved a configuration.
    """
    config = get_configuration()
    if config is None:
        raise ConfigurationMissing()
    return Rates(
        breakfast=Decimal(config.breakfast_rate),
        lunch=Decimal(config.lunch_rate),
        dinner=Decimal(config.dinner_rate),
        monthly_water_total=Decimal(config.monthly_water_bill_total),
    )


def _parse_amount(value, field, maximum):
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite() or amount < 0 or amount > maximum:
        raise ValidationError(f"{field} must be between 0 and {maximum}")
    return amount.quantize(Decimal("0.01"))


def update_rates(breakfast, lunch, dinner, monthly_water_total, updated_by=None):
    """Replaces all four values at once and stamps who changed them."""
    values = {
        "breakfast_rate": _parse_amount(breakfast, "breakfast_rate", MAX_MEAL_RATE),
        "lunch_rate": _parse_amount(lunch, "lunch_rate", MAX_MEAL_RATE),
        "dinner_rate": _parse_amount(dinner, "dinner_rate", MAX_MEAL_RATE),
        "monthly_water_bill_total": _parse_amount(
            monthly_water_total, "monthly_water_bill_total", MAX_WATER_TOTAL
        ),
    }

    with atomic():
        config = get_configuration()
        if config is None:
            config = BillingConfiguration(id=SINGLETON_ID, **values)
            db.session.add(config)
        else:
            for key, value in values.items():
                setattr(config, key, value)
        config.updated_by = updated_by
        config.last_updated = get_clock().now()

    logger.info("Billing configuration updated by user %s", updated_by)
    return config
