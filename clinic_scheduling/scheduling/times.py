"""Wall-clock helpers shared by the scheduling engine."""

from datetime import date, datetime, time, timedelta

TIME_FORMAT = '%H:%M'
WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')
WORKING_WEEKDAYS = WEEKDAY_NAMES[:5]

# Any calendar day works as the anchor when the caller has no date at hand,
# since intervals never cross midnight.
ANCHOR_DATE = date(2000, 1, 3)


def parse_hhmm(value: str | time) -> time:
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    normalized = value.strip()
    for pattern in (TIME_FORMAT, '%H:%M:%S'):
        try:
            return datetime.strptime(normalized, pattern).time().replace(second=0)
        except ValueError:
            continue

    raise ValueError(f'Invalid time "{value}", expected HH:MM.')


def format_hhmm(value: time | datetime) -> str:
    return value.strftime(TIME_FORMAT)


def normalize_hhmm(value: str | time) -> str:
    return format_hhmm(parse_hhmm(value))


def combine(on_date: date, value: str | time) -> datetime:
    # Both ends of an interval are anchored to the same calendar day so that
    # arithmetic never crosses a timezone offset change.
    return datetime.combine(on_date, parse_hhmm(value))


def add_minutes(on_date: date, value: str | time, minutes: int) -> str:
    return format_hhmm(combine(on_date, value) + timedelta(minutes=minutes))


def minutes_between(on_date: date, start: str | time, end: str | time) -> int:
    delta = combine(on_date, end) - combine(on_date, start)
    return int(delta.total_seconds() // 60)


def weekday_name(on_date: date) -> str:
    return WEEKDAY_NAMES[on_date.weekday()]


def weekday_number(on_date: date) -> int:
    """ISO weekday, Monday is 1 and Sunday is 7."""
    return on_date.isoweekday()


def weekday_name_from_number(number: int) -> str:
    if not 1 <= number <= 7:
        raise ValueError(f'Weekday number must be between 1 and 7, got {number}.')
    return WEEKDAY_NAMES[number - 1]


def normalize_weekday(value: str) -> str:
    normalized = value.strip().lower()
    if normalized not in WEEKDAY_NAMES:
        raise ValueError(f'Unknown weekday "{value}".')
    return normalized
