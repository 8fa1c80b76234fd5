"""Source of the current date for every overdue and expiration check."""

from datetime import date, timedelta


class SystemClock:
    def today(self) -> date:
        return date.today()


class FixedClock:
    """A clock pinned to a given day; tests move it forward explicitly."""

    def __init__(self, current: date):
        self.current = current

    def today(self) -> date:
        return self.current

    def advance(self, days: int = 1) -> date:
        self.current = self.current + timedelta(days=days)
        return self.current
