from datetime import datetime, date
from flask import current_app, has_app_context


class SystemClock:
    def now(self):
        return datetime.now()

    def today(self):
        return date.today()


class FixedClock:
    """Clock frozen at a given instant; ``advance`` moves it forward."""

    def __init__(self, instant):
        self.instant = instant

    def now(self):
        return self.instant

    def today(self):
        return self.instant.date()

    def advance(self, delta):
        self.instant = self.instant + delta


_system_clock = SystemClock()


def init_clock(app, clock=None):
    app.extensions["mess_clock"] = clock or _system_clock


def get_clock():
    if has_app_context():
        return current_app.extensions.get("mess_clock", _system_clock)
    return _system_clock
