"""Schedule-slot parsing.

Turns whatever the call agent hands us (structured slot objects, loose
strings like "Tuesday at 2pm", or a whole receptionist utterance) into
canonical ``ScheduleSlot`` values. Parsing never raises: unparsable input is
dropped from lists, and callers that need at least one slot get
``fallback_slots``.

Everything is pure apart from the ``today`` reference date, which every
public function accepts so results are reproducible.
"""

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, timedelta

logger = logging.getLogger(__name__)

# date.weekday() order: Monday == 0
DAY_CODES = ["MON", "TUE", "WED", "THU", "FRI", "SAT", "SUN"]
WEEKDAY_NAMES = [
    "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
]
WEEKDAY_INDEX = {name: i for i, name in enumerate(WEEKDAY_NAMES)}
WEEKDAY_INDEX.update({name[:3]: i for i, name in enumerate(WEEKDAY_NAMES)})

MONTH_ABBREV = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
MONTH_INDEX = {name.lower(): i + 1 for i, name in enumerate(MONTH_ABBREV)}
MONTH_INDEX.update({
    "january": 1, "february": 2, "march": 3, "april": 4, "june": 6, "july": 7,
    "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
})

DEFAULT_TIME = "02:00 PM"

# "am"/"pm" only count as scheduling language after a number, see TIME_RE
SCHEDULING_KEYWORDS = frozenset({
    "available", "availability", "appointment", "appointments",
    "slot", "slots", "opening", "openings", "schedule",
    *WEEKDAY_NAMES,
})

WEEKDAY_RE = re.compile(r"\b(" + "|".join(WEEKDAY_NAMES) + r")\b", re.IGNORECASE)
TIME_RE = re.compile(r"\b(\d{1,2})(?::(\d{2}))?\s*([ap])\.?\s?m\.?(?![a-z])", re.IGNORECASE)
CLOCK_RE = re.compile(r"\b(\d{1,2}):(\d{2})\b")
ORDINAL_RE = re.compile(r"\b(\d{1,2})(?:st|nd|rd|th)\b", re.IGNORECASE)
CLAUSE_SPLIT_RE = re.compile(r"[,;!?]|\.\s|\bor\b|\band\b|\bbut\b", re.IGNORECASE)


@dataclass(frozen=True)
class ScheduleSlot:
    day: str
    date: str
    time: str
    month: str | None = None

    def to_dict(self) -> dict:
        d = {"day": self.day, "date": self.date, "time": self.time}
        if self.month:
            d["month"] = self.month
        return d


def match_any_keyword(text: str, keywords) -> bool:
    """Check if any keyword appears in text as a whole word (not substring)."""
    lower = text.lower()
    return any(re.search(rf"\b{re.escape(kw)}\b", lower) for kw in keywords)


def contains_scheduling_offer(text: str) -> bool:
    """Heuristic: does this utterance look like someone offering times?

    Lossy by design. Ordinary conversation that mentions a weekday or an
    appointment will also trip it.
    """
    if not text:
        return False
    return match_any_keyword(text, SCHEDULING_KEYWORDS) or normalize_time(text) is not None


def _format_time(hour: int, minute: int, meridian: str | None) -> str | None:
    if hour > 23 or minute > 59:
        return None
    if meridian is None:
        meridian = "PM" if hour >= 12 else "AM"
    if hour > 12:
        hour -= 12
    elif hour == 0:
        hour = 12
    return f"{hour:02d}:{minute:02d} {meridian}"


def normalize_time(text: str) -> str | None:
    """Find the first time token in text and render it as "HH:MM AM|PM"."""
    if not text:
        return None
    m = TIME_RE.search(text)
    if m:
        meridian = "AM" if m.group(3).lower() == "a" else "PM"
        return _format_time(int(m.group(1)), int(m.group(2) or 0), meridian)
    m = CLOCK_RE.search(text)
    if m:
        return _format_time(int(m.group(1)), int(m.group(2)), None)
    return None


def fallback_slots(today: date | None = None) -> list[ScheduleSlot]:
    """Fixed pair offered when nothing could be parsed: tomorrow 2pm, day after 10am."""
    today = today or date.today()
    first = today + timedelta(days=1)
    second = today + timedelta(days=2)
    return [
        ScheduleSlot(day=DAY_CODES[first.weekday()], date=str(first.day), time="02:00 PM"),
        ScheduleSlot(day=DAY_CODES[second.weekday()], date=str(second.day), time="10:00 AM"),
    ]


def _next_weekday(today: date, index: int) -> date:
    days_until = (index - today.weekday()) % 7
    return today + timedelta(days=days_until or 7)


def _resolve_month(value, today: date) -> int:
    if value is None:
        return today.month
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text in MONTH_INDEX:
        return MONTH_INDEX[text]
    try:
        return int(text)
    except ValueError:
        return today.month


def _parse_mapping(raw: Mapping, today: date) -> ScheduleSlot | None:
    if all(k in raw for k in ("day", "date", "time")):
        # Already canonical, trust the caller
        return ScheduleSlot(
            day=str(raw["day"]),
            date=str(raw["date"]),
            time=str(raw["time"]),
            month=raw.get("month"),
        )

    if raw.get("time") is None:
        logger.warning("Slot object without a time: %s", dict(raw))
        return None
    time_str = normalize_time(str(raw["time"])) or str(raw["time"])

    weekday = raw.get("dayOfWeek")
    day = raw.get("day")
    if weekday is None and isinstance(day, str) and day.strip().isalpha():
        weekday = day

    if weekday is not None:
        index = WEEKDAY_INDEX.get(str(weekday).strip().lower())
        if index is None:
            logger.warning("Unknown dayOfWeek: %r", weekday)
            return None
        target = _next_weekday(today, index)
        return ScheduleSlot(
            day=DAY_CODES[index],
            date=str(target.day),
            time=time_str,
            month=MONTH_ABBREV[target.month - 1],
        )

    if day is not None:
        digits = re.sub(r"\D", "", str(day))
        if not digits:
            return None
        month = _resolve_month(raw.get("month"), today)
        year = today.year + 1 if month < today.month else today.year
        try:
            target = date(year, month, int(digits))
        except ValueError:
            logger.warning("Invalid slot date: month=%s day=%s", month, digits)
            return None
        return ScheduleSlot(
            day=DAY_CODES[target.weekday()],
            date=str(target.day),
            time=time_str,
            month=MONTH_ABBREV[target.month - 1],
        )

    return None


def _date_from_ordinal(day_of_month: int, today: date) -> date | None:
    try:
        target = date(today.year, today.month, day_of_month)
    except ValueError:
        return None
    if target < today:
        year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
        try:
            target = date(year, month, day_of_month)
        except ValueError:
            return None
    return target


def _parse_text(text: str, today: date) -> ScheduleSlot | None:
    day_match = WEEKDAY_RE.search(text)
    time_str = normalize_time(text)
    ordinal = ORDINAL_RE.search(text)
    if not day_match and not time_str and not ordinal:
        return None

    day_code = DAY_CODES[WEEKDAY_INDEX[day_match.group(1).lower()]] if day_match else None
    time_str = time_str or DEFAULT_TIME

    target = _date_from_ordinal(int(ordinal.group(1)), today) if ordinal else None
    if target is not None:
        return ScheduleSlot(
            day=day_code or DAY_CODES[target.weekday()],
            date=str(target.day),
            time=time_str,
            month=MONTH_ABBREV[target.month - 1],
        )

    tomorrow = today + timedelta(days=1)
    return ScheduleSlot(
        day=day_code or DAY_CODES[today.weekday()],
        date=str(tomorrow.day),
        time=time_str,
    )


def parse_slot(raw, today: date | None = None) -> ScheduleSlot | None:
    """Parse one slot from a ScheduleSlot, a mapping, or free text.

    Returns None when neither a day nor a time can be extracted.
    """
    today = today or date.today()
    if isinstance(raw, ScheduleSlot):
        return raw
    if isinstance(raw, Mapping):
        return _parse_mapping(raw, today)
    if isinstance(raw, str):
        return _parse_text(raw, today)
    logger.warning("Unsupported slot type %s", type(raw).__name__)
    return None


def parse_slots(raw_slots, today: date | None = None) -> list[ScheduleSlot]:
    """Parse a list of slots, dropping anything unparsable."""
    if not raw_slots:
        return []
    if isinstance(raw_slots, (str, Mapping)):
        raw_slots = [raw_slots]
    today = today or date.today()
    slots = []
    for raw in raw_slots:
        slot = parse_slot(raw, today)
        if slot is None:
            logger.info("Dropping unparsable slot: %r", raw)
            continue
        slots.append(slot)
    return slots


def parse_required_slot(raw, today: date | None = None) -> list[ScheduleSlot]:
    """Parse a slot the caller cannot do without; total failure yields the fallback pair."""
    today = today or date.today()
    slot = parse_slot(raw, today)
    if slot is None:
        logger.warning("Could not parse required slot %r, using fallback slots", raw)
        return fallback_slots(today)
    return [slot]


def slots_from_text(text: str, today: date | None = None) -> list[ScheduleSlot]:
    """Extract every offered slot from an utterance.

    The utterance is split into clauses. A weekday carries forward to later
    clauses that only name a time ("Tuesday at 2pm or 4pm"), and a
    weekday-only clause is folded into the time that follows it, or offered
    at the default time when no time follows.
    """
    today = today or date.today()
    slots: list[ScheduleSlot] = []
    carry_day = None
    held = None

    def emit(clause: str):
        slot = _parse_text(clause, today)
        if slot is not None and slot not in slots:
            slots.append(slot)

    for clause in CLAUSE_SPLIT_RE.split(text or ""):
        clause = clause.strip()
        if not clause:
            continue
        day_match = WEEKDAY_RE.search(clause)
        has_time = normalize_time(clause) is not None
        if day_match:
            carry_day = day_match.group(1)
        if day_match and not has_time and not ORDINAL_RE.search(clause):
            if held:
                emit(held)
            held = clause
            continue
        if has_time and not day_match and carry_day:
            clause = f"{carry_day} {clause}"
        elif held:
            # Held weekday was not folded into this clause, offer it on its own
            emit(held)
        held = None
        emit(clause)

    if held:
        emit(held)

    if not slots:
        return fallback_slots(today)
    return slots
