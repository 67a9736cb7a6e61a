from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from mess.extensions import limiter, SENSITIVE_LIMIT
from mess.services import payments
from mess.services.reconciler import get_bill
from mess.errors import AlreadyPaid, MessError
from utils.access_control import get_current_teacher, ensure_owns
from utils.audit import log_event
from utils.decorators import role_required, current_user

payments_bp = Blueprint('payments', __name__)


def _own_unpaid_bill(bill_id):
    teacher = get_current_teacher(current_user())
    bill = ensure_owns(teacher, get_bill(bill_id), "Bill not found.")
    if bill.is_paid:
        raise AlreadyPaid("Bill not found or already paid.")
    return bill


@payments_bp.route('/<int:bill_id>/token', methods=['GET'])
@jwt_required()
@role_required('teacher')
def payment_token(bill_id):
    bill = _own_unpaid_bill(bill_id)
    bill = payments.issue_payment_token(bill.id)
    return jsonify({
        "bill_id": bill.id,
        "payment_token": bill.payment_token,
        "amount": float(bill.total_bill),
        "period": bill.period_label,
    }), 200


@payments_bp.route('/<int:bill_id>', methods=['POST'])
@jwt_required()
@role_required('teacher')
@limiter.limit(SENSITIVE_LIMIT, override_defaults=False)
def pay_bill(bill_id):
    bill = _own_unpaid_bill(bill_id)
    data = request.get_json() or {}

    try:
        bill, result = payments.pay_by_card(
            bill.id,
            data.get('card_number'),
            data.get('card_holder_name'),
            data.get('expiry_date'),
            data.get('cvv'),
        )
    except MessError as e:
        log_event("PAYMENT_FAILED", user_id=current_user().id, ip=request.remote_addr,
                  description=f"Bill {bill_id}: {e}", level="WARNING")
        raise

    log_event("PAYMENT_SUCCESS", user_id=current_user().id, ip=request.remote_addr,
              description=f"Bill {bill.id} paid, transaction {result.transaction_id}")
    return jsonify({
        "message": f"Payment successful! Transaction ID: {result.transaction_id}. "
                   f"Amount paid: {float(result.amount):.2f}.",
        "transaction_id": result.transaction_id,
        "bill": bill.to_dict(),
    }), 200
