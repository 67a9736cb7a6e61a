from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from mess.services import reconciler, payments
from mess.services.rates import get_configuration, update_rates, get_rates
from utils.access_control import get_current_teacher, ensure_owns
from utils.audit import log_event
from utils.decorators import role_required, current_user
from utils.forms import as_bool
from utils.periods import validate_period

billing_bp = Blueprint('billing', __name__)

RECENT_BILLS_LIMIT = 50


def _bool_arg(name):
    value = request.args.get(name)
    if value is None or value == '':
        return None
    return as_bool(value, name)


# ---------- Configuration ----------

@billing_bp.route('/config', methods=['GET'])
@jwt_required()
@role_required('admin')
def get_billing_config():
    config = get_configuration()
    if config is None:
        return jsonify({"configured": False, "config": None}), 200
    return jsonify({"configured": True, "config": config.to_dict()}), 200


@billing_bp.route('/config', methods=['PUT'])
@jwt_required()
@role_required('admin')
def update_billing_config():
    data = request.get_json() or {}
    missing = [f for f in ("breakfast_rate", "lunch_rate", "dinner_rate", "monthly_water_bill_total")
               if data.get(f) is None]
    if missing:
        return jsonify({"error": "ValidationError", "message": f"Missing required fields: {missing}"}), 400

    config = update_rates(
        data["breakfast_rate"], data["lunch_rate"], data["dinner_rate"], data["monthly_water_bill_total"],
        updated_by=current_user().id,
    )
    log_event("BILLING_CONFIG_UPDATED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Rates now {config.breakfast_rate}/{config.lunch_rate}/{config.dinner_rate}, "
                          f"water {config.monthly_water_bill_total}")
    return jsonify({"message": "Billing configuration updated successfully", "config": config.to_dict()}), 200


# ---------- Admin bills ----------

@billing_bp.route('/generate', methods=['POST'])
@jwt_required()
@role_required('admin')
def generate_bill():
    data = request.get_json() or {}
    try:
        teacher_id = int(data.get('teacher_id'))
        month, year = validate_period(data.get('month'), data.get('year'))
    except (TypeError, ValueError) as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    bill = reconciler.generate(teacher_id, month, year, generated_by=current_user().id)
    log_event("BILL_GENERATED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Bill {bill.id} for {bill.teacher.full_name} ({bill.period_label}): {bill.total_bill}")
    return jsonify({
        "message": f"Bill generated successfully for {bill.teacher.full_name} - {bill.period_label}",
        "bill": bill.to_dict(include_teacher=True),
    }), 200


@billing_bp.route('/', methods=['GET'])
@jwt_required()
@role_required('admin')
def list_bills():
    try:
        teacher_id = request.args.get('teacher_id', type=int)
        month = request.args.get('month', type=int)
        year = request.args.get('year', type=int)
        is_paid = _bool_arg('is_paid')
    except ValueError as e:
        return jsonify({"error": "ValidationError", "message": str(e)}), 400

    bills = reconciler.list_bills(teacher_id=teacher_id, month=month, year=year, is_paid=is_paid,
                                  limit=RECENT_BILLS_LIMIT)
    return jsonify({"bills": [b.to_dict(include_teacher=True) for b in bills]}), 200


@billing_bp.route('/<int:bill_id>', methods=['GET'])
@jwt_required()
@role_required('admin')
def get_bill(bill_id):
    bill = reconciler.get_bill(bill_id)
    return jsonify(bill.to_dict(include_teacher=True)), 200


@billing_bp.route('/<int:bill_id>/mark-paid', methods=['POST'])
@jwt_required()
@role_required('admin')
def mark_bill_paid(bill_id):
    bill = payments.mark_paid(bill_id)
    log_event("BILL_MARKED_PAID", user_id=current_user().id, ip=request.remote_addr,
              description=f"Bill {bill.id} ({bill.period_label}) marked paid")
    return jsonify({"message": "Bill marked as paid", "bill": bill.to_dict(include_teacher=True)}), 200


@billing_bp.route('/<int:bill_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin')
def delete_bill(bill_id):
    label = reconciler.delete_bill(bill_id)
    log_event("BILL_DELETED", user_id=current_user().id, ip=request.remote_addr,
              description=f"Deleted paid bill {label}", level="WARNING")
    return jsonify({"message": f"Bill for {label} deleted successfully"}), 200


# ---------- Teacher bills ----------

@billing_bp.route('/mine', methods=['GET'])
@jwt_required()
@role_required('teacher')
def my_bills():
    teacher = get_current_teacher(current_user())
    bills = reconciler.list_bills(teacher_id=teacher.id)
    total_unpaid = sum(b.total_bill for b in bills if not b.is_paid)
    return jsonify({
        "bills": [b.to_dict() for b in bills],
        "total_unpaid": float(total_unpaid),
    }), 200


@billing_bp.route('/mine/<int:bill_id>', methods=['GET'])
@jwt_required()
@role_required('teacher')
def my_bill_detail(bill_id):
    teacher = get_current_teacher(current_user())
    bill = ensure_owns(teacher, reconciler.get_bill(bill_id), "Bill not found.")
    rates = get_rates()
    return jsonify({
        "bill": bill.to_dict(),
        "rates": {
            "breakfast": float(rates.breakfast),
            "lunch": float(rates.lunch),
            "dinner": float(rates.dinner),
            "monthly_water_bill_total": float(rates.monthly_water_total),
        },
    }), 200
