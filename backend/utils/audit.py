import os
from flask import current_app, has_app_context, has_request_context, request

from schooladmin.models.base import utcnow

DEFAULT_AUDIT_LOG_FILE = os.path.join("logs", "audit.log")


def log_event(event_type, user_id=None, ip=None, description=None, level="INFO"):
    """
    Appends a security or audit-related event to the audit log file.

    Parameters:
        event_type (str): The type of the event (e.g., LOGIN_SUCCESS, SCAN_REJECTED).
        user_id (int|None): The acting user ID, if available.
        ip (str|None): IP address; taken from the current request when omitted.
        description (str|None): Additional context.
        level (str): Log level (e.g., INFO, WARNING, ERROR).
    """
    path = DEFAULT_AUDIT_LOG_FILE
    if has_app_context():
        path = current_app.config.get("AUDIT_LOG_FILE") or path
    if ip is None and has_request_context():
        ip = request.remote_addr

    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    timestamp = utcnow().strftime('%Y-%m-%d %H:%M:%S')
    log_entry = (
        f"[{timestamp}] [{level.upper()}] EVENT: {event_type} | "
        f"USER: {user_id or 'N/A'} | IP: {ip or 'N/A'} | DESC: {description or 'N/A'}\n"
    )

    with open(path, "a", encoding="utf-8") as log_file:
        log_file.write(log_entry)
