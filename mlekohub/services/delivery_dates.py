"""
Delivery dates - racunanje datuma isporuke za pretplatu.

Ciste funkcije bez pristupa bazi:
- get_delivery_dates: datumi koji odgovaraju ucestalosti
- apply_exclusions: uklanja odmor, praznike i pauzu (tim redom)
- calculate_scheduled_deliveries: oboje, uz granice pretplate
- month_bounds: granice kalendarskog meseca

Svi opsezi su inkluzivni.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple
from dateutil.relativedelta import relativedelta

from ..errors import BadRequestError, InvalidConfigurationError
from ..models.subscription import SubscriptionFrequency


WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')

DateRange = Tuple[date, date]


@dataclass
class ExclusionResult:
    """Rezultat filtriranja: datumi za isporuku + razlog za svaki uklonjen datum."""
    actual_delivery_dates: List[date] = field(default_factory=list)
    vacation_dates: List[date] = field(default_factory=list)
    holiday_dates: List[date] = field(default_factory=list)
    paused_dates: List[date] = field(default_factory=list)


@dataclass
class ScheduleResult:
    """Planirani datumi pretplate u prozoru."""
    scheduled_dates: List[date] = field(default_factory=list)
    vacation_dates: List[date] = field(default_factory=list)
    holiday_dates: List[date] = field(default_factory=list)
    paused_dates: List[date] = field(default_factory=list)


def parse_custom_days(custom_days) -> set:
    """
    Pretvara listu imena dana u skup indeksa (0=ponedeljak).

    Raises:
        InvalidConfigurationError: Prazna lista ili nepoznato ime dana
    """
    if not custom_days:
        raise InvalidConfigurationError('Custom days are required for CUSTOM frequency')
    indexes = set()
    for name in custom_days:
        normalized = str(name).strip().lower()
        if normalized not in WEEKDAY_NAMES:
            raise InvalidConfigurationError(f'Invalid day name: {name}')
        indexes.add(WEEKDAY_NAMES.index(normalized))
    return indexes


def _as_frequency(frequency):
    if isinstance(frequency, SubscriptionFrequency):
        return frequency
    try:
        return SubscriptionFrequency(str(frequency).upper())
    except ValueError:
        raise InvalidConfigurationError(f'Unknown frequency: {frequency}')


def get_delivery_dates(start: date, end: date, frequency, custom_days=None,
                       anchor: Optional[date] = None) -> List[date]:
    """
    Vraca rastucu listu datuma u [start, end] koji odgovaraju ucestalosti.

    ALTERNATE: parni broj dana od `anchor` (start_date pretplate),
    tako da pomeranje prozora ne menja ritam isporuka.

    Args:
        start: Pocetak opsega (inkluzivno)
        end: Kraj opsega (inkluzivno)
        frequency: SubscriptionFrequency ili string
        custom_days: Imena dana za CUSTOM (case-insensitive)
        anchor: Pocetak pretplate za ALTERNATE (default: start)

    Returns:
        List[date]
    """
    frequency = _as_frequency(frequency)
    allowed_days = parse_custom_days(custom_days) if frequency == SubscriptionFrequency.CUSTOM else None

    if end < start:
        return []

    anchor = anchor or start
    dates = []
    current = start
    while current <= end:
        weekday = current.weekday()
        if frequency == SubscriptionFrequency.DAILY:
            matches = True
        elif frequency == SubscriptionFrequency.ALTERNATE:
            matches = (current - anchor).days % 2 == 0
        elif frequency == SubscriptionFrequency.WEEKDAYS:
            matches = weekday < 5
        elif frequency == SubscriptionFrequency.WEEKENDS:
            matches = weekday >= 5
        else:
            matches = weekday in allowed_days

        if matches:
            dates.append(current)
        current += timedelta(days=1)

    return dates


def _range_of(item) -> DateRange:
    """Prihvata (start, end) tuple ili objekat sa start_date/end_date (Vacation)."""
    if isinstance(item, tuple):
        return item
    return item.start_date, item.end_date


def apply_exclusions(dates: Iterable[date], vacations: Iterable = (), holidays: Iterable[date] = (),
                     pause: Optional[DateRange] = None) -> ExclusionResult:
    """
    Uklanja datume redom: odmor -> praznik -> pauza.

    Datum uklonjen ranijim filterom se ne proverava ponovo, pa tri liste
    uklonjenih datuma nemaju preseka.
    """
    vacation_ranges = [_range_of(v) for v in vacations]
    holiday_set = set(holidays)
    result = ExclusionResult()

    for day in sorted(set(dates)):
        if any(start <= day <= end for start, end in vacation_ranges):
            result.vacation_dates.append(day)
        elif day in holiday_set:
            result.holiday_dates.append(day)
        elif pause and pause[0] <= day <= pause[1]:
            result.paused_dates.append(day)
        else:
            result.actual_delivery_dates.append(day)

    return result


def calculate_scheduled_deliveries(subscription, window_start: date, window_end: date,
                                   vacations: Iterable = (), holidays: Iterable[date] = (),
                                   pause: Optional[DateRange] = None) -> ScheduleResult:
    """
    Planirani datumi pretplate u prozoru [window_start, window_end].

    Prozor se seca sa [start_date, end_date] pretplate (end_date NULL = otvoreno).
    `subscription` je bilo koji objekat sa start_date, end_date, frequency i custom_days.
    """
    start = max(window_start, subscription.start_date)
    end = min(window_end, subscription.end_date) if subscription.end_date else window_end
    if end < start:
        return ScheduleResult()

    dates = get_delivery_dates(
        start, end,
        subscription.frequency,
        custom_days=subscription.custom_days,
        anchor=subscription.start_date
    )
    excluded = apply_exclusions(dates, vacations, holidays, pause)

    return ScheduleResult(
        scheduled_dates=excluded.actual_delivery_dates,
        vacation_dates=excluded.vacation_dates,
        holiday_dates=excluded.holiday_dates,
        paused_dates=excluded.paused_dates,
    )


def overlap_days(range_start: date, range_end: date, period_start: date, period_end: date) -> int:
    """Broj dana preseka dva inkluzivna opsega (0 ako se ne seku)."""
    start = max(range_start, period_start)
    end = min(range_end, period_end)
    if end < start:
        return 0
    return (end - start).days + 1


def month_bounds(year: int, month: int) -> DateRange:
    """
    (prvi, poslednji) dan kalendarskog meseca.

    Raises:
        BadRequestError: Neispravan mesec ili godina
    """
    try:
        start = date(int(year), int(month), 1)
    except (TypeError, ValueError):
        raise BadRequestError(f'Invalid month: {year}-{month}')
    return start, start + relativedelta(months=1) - timedelta(days=1)
