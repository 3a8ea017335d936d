"""CronEvaluator — five-field cron matching without a third-party parser.

Each field is compiled into the set of values it allows, so matching an
instant is a handful of set lookups and ``next_occurrence`` only has to walk
days, not minutes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta

from remindkit.errors import ConfigurationError
from remindkit.timeutil import align, floor_minute

logger = logging.getLogger(__name__)

# How far next_occurrence looks before giving up (e.g. "0 0 30 2 *").
LOOKAHEAD_DAYS = 5 * 366

_MONTH_NAMES = {
    name: i
    for i, name in enumerate(
        ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"],
        start=1,
    )
}
_DOW_NAMES = {
    name: i for i, name in enumerate(["sun", "mon", "tue", "wed", "thu", "fri", "sat"])
}


@dataclass(frozen=True)
class _FieldSpec:
    name: str
    low: int
    high: int
    names: dict[str, int]


_FIELDS = (
    _FieldSpec("minute", 0, 59, {}),
    _FieldSpec("hour", 0, 23, {}),
    _FieldSpec("day_of_month", 1, 31, {}),
    _FieldSpec("month", 1, 12, _MONTH_NAMES),
    # 7 is accepted as an alias for Sunday and folded to 0 after parsing.
    _FieldSpec("day_of_week", 0, 7, _DOW_NAMES),
)


def _parse_value(token: str, spec: _FieldSpec) -> int:
    lowered = token.lower()
    if lowered in spec.names:
        return spec.names[lowered]
    if not (token.isascii() and token.isdigit()):
        msg = f"Invalid {spec.name} value: '{token}'"
        raise ConfigurationError(msg)
    value = int(token)
    if not spec.low <= value <= spec.high:
        msg = f"{spec.name} value {value} out of range {spec.low}-{spec.high}"
        raise ConfigurationError(msg)
    return value


def _parse_field(text: str, spec: _FieldSpec) -> tuple[frozenset[int], bool]:
    """Compile one field into its allowed values.

    Returns ``(values, is_wildcard)``. ``is_wildcard`` is True when the field
    starts with ``*`` (so ``*/2`` counts too, as in Vixie cron) and drives the
    day-of-month / day-of-week OR rule.
    """
    values: set[int] = set()
    for part in text.split(","):
        if not part:
            msg = f"Empty entry in {spec.name} field: '{text}'"
            raise ConfigurationError(msg)

        base, _, step_text = part.partition("/")
        step = 1
        if step_text:
            if not (step_text.isascii() and step_text.isdigit()) or int(step_text) == 0:
                msg = f"Invalid step in {spec.name} field: '{part}'"
                raise ConfigurationError(msg)
            step = int(step_text)

        if base == "*":
            start, end = spec.low, spec.high
        elif "-" in base:
            low_text, _, high_text = base.partition("-")
            start = _parse_value(low_text, spec)
            end = _parse_value(high_text, spec)
            if start > end:
                msg = f"Descending range in {spec.name} field: '{part}'"
                raise ConfigurationError(msg)
        else:
            start = _parse_value(base, spec)
            # "5/15" means "from 5 to the end, every 15"
            end = spec.high if step_text else start

        values.update(range(start, end + 1, step))

    if spec.name == "day_of_week" and 7 in values:
        values.discard(7)
        values.add(0)
    return frozenset(values), text.startswith("*")


class CronEvaluator:
    """Evaluates a five-field cron expression (minute hour dom month dow).

    Construction never raises. An invalid expression yields an evaluator that
    is never due and carries the ``ConfigurationError`` in ``error``; use
    :meth:`parse` where invalid input should fail loudly (task creation).
    """

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.error: ConfigurationError | None = None
        self._minutes: frozenset[int] = frozenset()
        self._hours: frozenset[int] = frozenset()
        self._days: frozenset[int] = frozenset()
        self._months: frozenset[int] = frozenset()
        self._weekdays: frozenset[int] = frozenset()
        self._dom_wildcard = True
        self._dow_wildcard = True
        try:
            self._compile(expression)
        except ConfigurationError as exc:
            self.error = exc

    @classmethod
    def parse(cls, expression: str) -> CronEvaluator:
        """Return an evaluator for *expression*, raising ConfigurationError if invalid."""
        evaluator = cls(expression)
        if evaluator.error is not None:
            raise evaluator.error
        return evaluator

    @property
    def valid(self) -> bool:
        return self.error is None

    def _compile(self, expression: str) -> None:
        parts = expression.split()
        if len(parts) != len(_FIELDS):
            msg = f"Expected 5 cron fields, got {len(parts)}: '{expression}'"
            raise ConfigurationError(msg)
        compiled = [_parse_field(text, spec) for text, spec in zip(parts, _FIELDS, strict=True)]
        self._minutes, _ = compiled[0]
        self._hours, _ = compiled[1]
        self._days, self._dom_wildcard = compiled[2]
        self._months, _ = compiled[3]
        self._weekdays, self._dow_wildcard = compiled[4]

    # -- Matching --------------------------------------------------------------

    def _day_matches(self, day: datetime) -> bool:
        if day.month not in self._months:
            return False
        dom_ok = day.day in self._days
        # isoweekday: Monday=1 .. Sunday=7; cron: Sunday=0
        dow_ok = (day.isoweekday() % 7) in self._weekdays
        if self._dom_wildcard or self._dow_wildcard:
            return dom_ok and dow_ok
        return dom_ok or dow_ok

    def matches(self, instant: datetime) -> bool:
        """True when *instant* falls in a minute the expression selects."""
        if not self.valid:
            return False
        return (
            instant.minute in self._minutes
            and instant.hour in self._hours
            and self._day_matches(instant)
        )

    def should_run(self, last_run: datetime | None, now: datetime) -> bool:
        """True when *now* is a matching minute that has not been run yet.

        A run anywhere inside the current matching minute counts as having
        run, so repeated polls within that minute never fire twice.
        """
        if not self.matches(now):
            return False
        if last_run is None:
            return True
        return align(last_run, now) < floor_minute(now)

    def next_occurrence(self, from_: datetime) -> datetime | None:
        """First matching minute strictly after *from_*, or None within the look-ahead."""
        if not self.valid:
            return None

        start = floor_minute(from_) + timedelta(minutes=1)
        hours = sorted(self._hours)
        minutes = sorted(self._minutes)
        day = start.replace(hour=0, minute=0)
        for _ in range(LOOKAHEAD_DAYS):
            if self._day_matches(day):
                for hour in hours:
                    for minute in minutes:
                        candidate = datetime.combine(
                            day.date(), time(hour, minute), tzinfo=start.tzinfo
                        )
                        if candidate >= start:
                            return candidate
            day += timedelta(days=1)

        logger.debug("No occurrence of '%s' within %d days", self.expression, LOOKAHEAD_DAYS)
        return None
