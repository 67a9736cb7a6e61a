import os
from flask import current_app, has_app_context
from utils.clock import get_clock

DEFAULT_AUDIT_LOG_FILE = os.path.join("logs", "audit.log")


def log_event(event_type, user_id=None, ip=None, description=None, level="INFO", print_to_console=False):
    """
    Logs a security or audit-related event to a file.

    Parameters:
        event_type (str): The type of the event (e.g., LOGIN_SUCCESS, BILL_GENERATED).
        user_id (int|None): The acting user ID, if available.
        ip (str|None): IP address, if available.
        description (str|None): Additional context.
        level (str): Log level (e.g., INFO, WARNING, ERROR).
        print_to_console (bool): Optionally print to stdout (for debugging/dev).
    """
    audit_file = DEFAULT_AUDIT_LOG_FILE
    if has_app_context():
        audit_file = current_app.config.get("AUDIT_LOG_FILE", DEFAULT_AUDIT_LOG_FILE)

    directory = os.path.dirname(audit_file)
    if directory:
        os.makedirs(directory, exist_ok=True)

    timestamp = get_clock().now().strftime('%Y-%m-%d %H:%M:%S')
    log_entry = (
        f"[{timestamp}] [{level.upper()}] EVENT: {event_type} | "
        f"USER: {user_id or 'N/A'} | IP: {ip or 'N/A'} | DESC: {description or 'N/A'}\n"
    )

    with open(audit_file, "a") as log_file:
        log_file.write(log_entry)

    if print_to_console:
        print(log_entry.strip())
