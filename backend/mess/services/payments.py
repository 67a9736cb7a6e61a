import logging

from mess.errors import AlreadyPaid, PaymentDeclined
from mess.models import Bill
from mess.services import ledger, gateway
from mess.services.reconciler import get_bill, ZERO
from utils.clock import get_clock
from utils.db import atomic, locked
from utils.locks import bill_lock
from utils.periods import month_bounds

logger = logging.getLogger(__name__)

CARD_METHOD = "Credit/Debit Card"
ADMIN_METHOD = "Marked paid by admin"


def _settle(bill_id, transaction_id=None, method=None):
    bill = get_bill(bill_id)
    with bill_lock(bill.teacher_id, bill.month, bill.year):
        with atomic():
            bill = locked(Bill.query.filter_by(id=bill_id)).first()
            if bill.is_paid:
                raise AlreadyPaid()
            bill.is_paid = True
            bill.paid_date = get_clock().now()
            bill.payment_method = method
            bill.transaction_id = transaction_id
            bill.unpaid_balance = ZERO
            start, end = month_bounds(bill.year, bill.month)
            ledger.purge_period(bill.teacher_id, start, end)
    logger.info("Bill %s settled (%s, transaction %s)", bill_id, method, transaction_id)
    return bill


def record_successful_payment(bill_id, transaction_id, method=CARD_METHOD):
    """
    Marks a bill paid after the gateway accepted the payment.

    The carried balance is always cleared and the billed month's attendance
    is purged, exactly like ``generate`` does.
    """
    return _settle(bill_id, transaction_id=transaction_id, method=method)


def mark_paid(bill_id):
    """Admin path: same transition without a gateway result."""
    return _settle(bill_id, method=ADMIN_METHOD)


def issue_payment_token(bill_id):
    with atomic():
        bill = get_bill(bill_id)
        if bill.is_paid:
            raise AlreadyPaid()
        bill.payment_token = gateway.generate_payment_token()
    return bill


def pay_by_card(bill_id, card_number, card_holder, expiry, cvv):
    """
    Charges the bill's total through the card gateway and settles it on success.

    A declined or invalid card raises PaymentDeclined and leaves the bill unchanged.
    """
    bill = get_bill(bill_id)
    if bill.is_paid:
        raise AlreadyPaid()

    result = gateway.process_payment(card_number, card_holder, expiry, cvv, bill.total_bill)
    if not result.success:
        logger.warning("Payment for bill %s failed: %s", bill_id, result.error_message)
        raise PaymentDeclined(result.error_message)

    return record_successful_payment(bill_id, result.transaction_id, CARD_METHOD), result
