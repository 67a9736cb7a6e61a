from .base_route import base_bp
from .auth import auth_bp
from .teachers import teachers_bp
from .attendance import attendance_bp
from .billing import billing_bp
from .payments import payments_bp
from .disputes import disputes_bp
from .menu import menu_bp
from .dashboard import dashboard_bp


def register_routes(app):
    app.register_blueprint(base_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(teachers_bp, url_prefix='/teachers')
    app.register_blueprint(attendance_bp, url_prefix='/attendance')
    app.register_blueprint(billing_bp, url_prefix='/billing')
    app.register_blueprint(payments_bp, url_prefix='/payments')
    app.register_blueprint(disputes_bp, url_prefix='/disputes')
    app.register_blueprint(menu_bp, url_prefix='/menu')
    app.register_blueprint(dashboard_bp, url_prefix='/dashboard')
