"""
Simulated card payment gateway.

Stands in for a real processor: validates card details, waits a moment and
occasionally declines, the way a bank would.
"""
import random
import time
import uuid
from collections import namedtuple
from datetime import date

from flask import current_app, has_app_context
from utils.clock import get_clock

PaymentResult = namedtuple(
    "PaymentResult", ["success", "transaction_id", "error_message", "amount", "processed_at"]
)

DEFAULT_DELAY = 1.0
DEFAULT_DECLINE_RATE = 0.05

_random = random.Random()


def _setting(key, default):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def _failure(message, amount):
    return PaymentResult(False, None, message, amount, None)


def is_valid_expiry(expiry, today):
    parts = (expiry or "").split("/")
    if len(parts) != 2:
        return False
    try:
        month, year = int(parts[0]), int(parts[1])
    except ValueError:
        return False
    if not 1 <= month <= 12:
        return False
    if year < 100:
        year += 2000
    # Cards stay valid through the last day of their expiry month.
    if month == 12:
        first_after = date(year + 1, 1, 1)
    else:
        first_after = date(year, month + 1, 1)
    return first_after > today


def process_payment(card_number, card_holder, expiry, cvv, amount, rng=None):
    clock = get_clock()
    rng = rng or _random

    delay = _setting("PAYMENT_GATEWAY_DELAY", DEFAULT_DELAY)
    if delay:
        time.sleep(delay)

    digits = str(card_number or "").replace(" ", "")
    if len(digits) != 16 or not digits.isdigit():
        return _failure("Invalid card number. Must be 16 digits.", amount)
    if not (card_holder or "").strip():
        return _failure("Card holder name is required.", amount)
    if not is_valid_expiry(expiry, clock.today()):
        return _failure("Invalid expiry date. Use MM/YY format.", amount)
    cvv = str(cvv or "").strip()
    if not cvv.isdigit() or not 3 <= len(cvv) <= 4:
        return _failure("Invalid CVV. Must be 3 or 4 digits.", amount)

    if rng.random() < _setting("PAYMENT_DECLINE_RATE", DEFAULT_DECLINE_RATE):
        return _failure("Transaction declined by bank. Please try again or use a different card.", amount)

    now = clock.now()
    transaction_id = f"TXN{now:%Y%m%d%H%M%S}{rng.randint(1000, 9999)}"
    return PaymentResult(True, transaction_id, None, amount, now)


def generate_payment_token():
    return uuid.uuid4().hex[:16].upper()
