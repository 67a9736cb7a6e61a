from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required
from mess.services import menu
from utils.decorators import role_required

menu_bp = Blueprint('menu', __name__)


@menu_bp.route('/', methods=['GET'])
def list_menu():
    items = menu.list_menu(day=request.args.get('day'), meal_type=request.args.get('meal_type'))
    return jsonify({"menu": [item.to_dict() for item in items]}), 200


@menu_bp.route('/today', methods=['GET'])
def todays_menu():
    day, items = menu.todays_menu()
    return jsonify({"day": day.value, "menu": [item.to_dict() for item in items]}), 200


@menu_bp.route('/<int:item_id>', methods=['GET'])
@jwt_required()
def get_menu_item(item_id):
    return jsonify(menu.get_item(item_id).to_dict()), 200


@menu_bp.route('/', methods=['POST'])
@jwt_required()
@role_required('admin')
def create_menu_item():
    item = menu.create_item(request.get_json() or {})
    return jsonify({"message": "Menu item created", "item": item.to_dict()}), 201


@menu_bp.route('/<int:item_id>', methods=['PUT'])
@jwt_required()
@role_required('admin')
def update_menu_item(item_id):
    item = menu.update_item(item_id, request.get_json() or {})
    return jsonify({"message": "Menu item updated", "item": item.to_dict()}), 200


@menu_bp.route('/<int:item_id>', methods=['DELETE'])
@jwt_required()
@role_required('admin')
def delete_menu_item(item_id):
    menu.deactivate_item(item_id)
    return jsonify({"message": "Menu item removed"}), 200
