"""
Capacity Service - dnevni kapacitet za adhoc isporuke.

current_approved se menja iskljucivo jednim atomskim upsert-om
(INSERT ... ON CONFLICT (date) DO UPDATE). Dva istovremena odobrenja
za isti datum ne mogu oba proci provera limita.
"""

import logging
from datetime import date, timedelta
from sqlalchemy import bindparam, text

from ..extensions import db
from ..errors import BadRequestError
from ..models import AdhocCapacity
from .settings_service import load_settings

logger = logging.getLogger(__name__)


def get_capacity(start: date, end: date, settings=None):
    """
    Kapacitet po danu za [start, end].

    Dani bez reda u bazi imaju default kapacitet i 0 odobrenih.

    Returns:
        list[dict] sa date, max_capacity, current_approved, available,
        is_blocked, block_reason
    """
    settings = settings or load_settings()
    rows = {
        row.date: row
        for row in AdhocCapacity.query.filter(
            AdhocCapacity.date >= start,
            AdhocCapacity.date <= end
        ).populate_existing().all()
    }

    result = []
    current = start
    while current <= end:
        row = rows.get(current)
        if row:
            max_capacity = row.max_adhoc_requests
            if max_capacity is None:
                max_capacity = settings.adhoc_default_capacity
            current_approved = row.current_approved
            is_blocked = row.is_blocked
            block_reason = row.block_reason
        else:
            max_capacity = settings.adhoc_default_capacity
            current_approved = 0
            is_blocked = False
            block_reason = None

        result.append({
            'date': current,
            'max_capacity': max_capacity,
            'current_approved': current_approved,
            'available': max(0, max_capacity - current_approved),
            'is_blocked': is_blocked,
            'block_reason': block_reason,
        })
        current += timedelta(days=1)

    return result


def get_blocked_dates(dates):
    """Vraca {date: block_reason} za blokirane datume iz liste."""
    if not dates:
        return {}
    rows = AdhocCapacity.query.filter(
        AdhocCapacity.date.in_(list(set(dates))),
        AdhocCapacity.is_blocked.is_(True)
    ).all()
    return {row.date: row.block_reason for row in rows}


_UPSERT_SQL = """
    INSERT INTO adhoc_capacity (date, max_adhoc_requests, current_approved, is_blocked, created_at, updated_at)
    VALUES (:day, NULL, :initial, :not_blocked, CURRENT_TIMESTAMP, CURRENT_TIMESTAMP)
    ON CONFLICT (date) DO UPDATE SET
        current_approved = CASE
            WHEN adhoc_capacity.current_approved + :delta < 0 THEN 0
            ELSE adhoc_capacity.current_approved + :delta
        END,
        updated_at = CURRENT_TIMESTAMP
"""

_LIMIT_GUARD_SQL = """
    WHERE adhoc_capacity.current_approved + :delta
            <= COALESCE(adhoc_capacity.max_adhoc_requests, :default_max)
        AND adhoc_capacity.is_blocked = :not_blocked
"""


def increment_capacity(day: date, delta: int = 1, enforce_limit: bool = False, settings=None) -> int:
    """
    Atomski menja current_approved za dan (kreira red ako ne postoji).

    Negativan delta (oslobadjanje) nikad ne spusta brojac ispod 0.

    Args:
        day: Datum
        delta: Promena (+1 odobrenje, -1 oslobadjanje)
        enforce_limit: Odbij ako bi se prekoracio max ili je dan blokiran

    Returns:
        Novi current_approved

    Raises:
        BadRequestError: Kapacitet pun ili dan blokiran (samo uz enforce_limit)
    """
    settings = settings or load_settings()
    default_max = settings.adhoc_default_capacity

    # Za red koji jos ne postoji vazi default limit
    if enforce_limit and delta > default_max:
        raise BadRequestError(f'Capacity exceeded for {day.isoformat()}')

    sql = _UPSERT_SQL + (_LIMIT_GUARD_SQL if enforce_limit else '')
    statement = text(sql).bindparams(bindparam('day', type_=db.Date))
    result = db.session.execute(statement, {
        'day': day,
        'delta': delta,
        'initial': max(delta, 0),
        'not_blocked': False,
        'default_max': default_max,
    })

    if enforce_limit and result.rowcount == 0:
        row = AdhocCapacity.query.filter_by(date=day).populate_existing().first()
        if row is not None and row.is_blocked:
            raise BadRequestError(
                f'Date {day.isoformat()} is blocked for adhoc deliveries'
                + (f': {row.block_reason}' if row.block_reason else '')
            )
        raise BadRequestError(f'Capacity exceeded for {day.isoformat()}')

    current = db.session.execute(
        text("SELECT current_approved FROM adhoc_capacity WHERE date = :day").bindparams(
            bindparam('day', type_=db.Date)
        ),
        {'day': day}
    ).scalar()

    logger.debug(f"Adhoc capacity {day}: delta={delta}, current_approved={current}")
    return current


def update_capacity_settings(day: date, max_capacity=None, is_blocked=None, block_reason=None):
    """
    Admin izmena kapaciteta za dan. current_approved se ne dira.

    Returns:
        AdhocCapacity
    """
    if max_capacity is not None and max_capacity < 0:
        raise BadRequestError('Max capacity must not be negative')

    capacity = AdhocCapacity.query.filter_by(date=day).first()
    if capacity is None:
        capacity = AdhocCapacity(date=day, current_approved=0, is_blocked=False)
        db.session.add(capacity)

    if max_capacity is not None:
        capacity.max_adhoc_requests = max_capacity
    if is_blocked is not None:
        capacity.is_blocked = is_blocked
        if not is_blocked:
            capacity.block_reason = None
    if block_reason is not None:
        capacity.block_reason = block_reason

    db.session.commit()
    logger.info(
        f"Adhoc capacity for {day} updated: max={capacity.max_adhoc_requests}, "
        f"blocked={capacity.is_blocked}"
    )
    return capacity
