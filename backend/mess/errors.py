"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``register_error_handlers`` turns them into JSON
responses of the form ``{"error": <code>, "message": <text>}``.
"""
from flask import jsonify


class MessError(Exception):
    status_code = 400
    code = "Error"

    def __init__(self, message=None):
        self.message = message or " ".join((self.__doc__ or self.code).split())
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class ValidationError(MessError):
    """The request was rejected because its input is invalid."""
    status_code = 400
    code = "ValidationError"


class NoMealsSelected(ValidationError):
    """Please select at least one meal. No attendance was saved."""
    code = "NoMealsSelected"


class NotFound(MessError):
    """The requested record was not found."""
    status_code = 404
    code = "NotFound"


class Forbidden(MessError):
    """You do not have permission to access this resource."""
    status_code = 403
    code = "Forbidden"


class Conflict(MessError):
    """The operation conflicts with the current state of the record."""
    status_code = 409
    code = "Conflict"


class AlreadyPaid(Conflict):
    """This bill has already been paid."""
    code = "AlreadyPaid"


class DuplicatePending(Conflict):
    """This attendance has already been reported and is awaiting admin review."""
    code = "DuplicatePending"


class AlreadyResolved(Conflict):
    """This dispute has already been resolved."""
    code = "AlreadyResolved"


class DuplicateAttendance(Conflict):
    """Attendance has already been recorded for this teacher on this date."""
    code = "DuplicateAttendance"


class ConfigurationMissing(MessError):
    """Billing configuration not found. Please configure billing first."""
    status_code = 412
    code = "ConfigurationMissing"


class TransientExternalFailure(MessError):
    """The external service failed. Please try again."""
    status_code = 502
    code = "TransientExternalFailure"


class PaymentDeclined(TransientExternalFailure):
    """The payment was declined. Please try again or use a different card."""
    status_code = 402
    code = "PaymentDeclined"


def register_error_handlers(app):
    @app.errorhandler(MessError)
    def handle_mess_error(error):
        if error.status_code >= 500:
            app.logger.warning("%s: %s", error.code, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({"error": "NotFound", "message": "Resource not found"}), 404
