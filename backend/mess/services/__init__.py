"""
Billing and attendance reconciliation services.

Each public command opens its own transaction through ``utils.db.atomic``;
the lower-level helpers only touch the current session and leave the commit
to their caller.
"""
