"""
Settings Service - snimak podesavanja engine-a.

Podrazumevane vrednosti dolaze iz Config klase (ADHOC_*, TAX_PERCENTAGE, ...),
a redovi u system_setting tabeli ih prepisuju. Snimak se ucitava jednom
po operaciji i prosledjuje eksplicitno servisima.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from flask import current_app

from ..extensions import db
from ..errors import BadRequestError
from ..models import SystemSetting

logger = logging.getLogger(__name__)


# Kljuc u bazi -> (kljuc u app.config, tip, kategorija)
SETTING_KEYS = {
    'adhoc_min_advance_days': ('ADHOC_MIN_ADVANCE_DAYS', int, 'adhoc'),
    'adhoc_max_advance_days': ('ADHOC_MAX_ADVANCE_DAYS', int, 'adhoc'),
    'adhoc_default_capacity': ('ADHOC_DEFAULT_CAPACITY', int, 'adhoc'),
    'adhoc_cancel_before_hours': ('ADHOC_CANCEL_BEFORE_HOURS', int, 'adhoc'),
    'tax_percentage': ('TAX_PERCENTAGE', Decimal, 'billing'),
    'max_pause_days': ('MAX_PAUSE_DAYS', int, 'subscription'),
    'bill_due_days': ('BILL_DUE_DAYS', int, 'billing'),
}

# Oblici vrednosti iz starih podesavanja: {"days": 1}, {"capacity": 50}, {"gst": 5}
_WRAPPED_VALUE_KEYS = ('days', 'capacity', 'hours', 'gst', 'percentage', 'value')


@dataclass(frozen=True)
class EngineSettings:
    """Nepromenljiv snimak podesavanja za jednu operaciju."""
    adhoc_min_advance_days: int = 1
    adhoc_max_advance_days: int = 30
    adhoc_default_capacity: int = 50
    adhoc_cancel_before_hours: int = 12
    tax_percentage: Decimal = Decimal('0')
    max_pause_days: int = 30
    bill_due_days: int = 10


def _unwrap(value):
    if isinstance(value, dict):
        for key in _WRAPPED_VALUE_KEYS:
            if key in value:
                return value[key]
        return None
    return value


def _coerce(key, raw):
    """Konvertuje sirovu vrednost u tip podesavanja."""
    _, kind, _ = SETTING_KEYS[key]
    value = _unwrap(raw)
    if value is None:
        raise BadRequestError(f'Setting {key} has no value')
    try:
        if kind is Decimal:
            result = Decimal(str(value))
        else:
            result = int(value)
    except (TypeError, ValueError, InvalidOperation):
        raise BadRequestError(f'Invalid value for setting {key}: {raw!r}')
    if result < 0:
        raise BadRequestError(f'Setting {key} must not be negative')
    return result


def load_settings():
    """
    Ucitava podesavanja: Config defaults, pa prepisuje vrednostima iz baze.

    Neispravne vrednosti iz baze se loguju i ignorisu (ostaje default).

    Returns:
        EngineSettings
    """
    values = {}
    for key, (config_key, _, _) in SETTING_KEYS.items():
        values[key] = _coerce(key, current_app.config.get(config_key, getattr(EngineSettings, key)))

    rows = SystemSetting.query.filter(SystemSetting.key.in_(list(SETTING_KEYS))).all()
    for row in rows:
        try:
            values[row.key] = _coerce(row.key, row.value)
        except BadRequestError as e:
            logger.warning(f"Ignoring system setting {row.key}: {e.message}")

    if values['adhoc_min_advance_days'] > values['adhoc_max_advance_days']:
        logger.warning(
            f"adhoc_min_advance_days ({values['adhoc_min_advance_days']}) > "
            f"adhoc_max_advance_days ({values['adhoc_max_advance_days']})"
        )

    return EngineSettings(**values)


def update_setting(key, value):
    """
    Postavlja vrednost podesavanja (admin).

    Args:
        key: Jedan od SETTING_KEYS
        value: Skalar ili {"days": n} / {"capacity": n} / ...

    Returns:
        SystemSetting

    Raises:
        BadRequestError: Nepoznat kljuc ili neispravna vrednost
    """
    if key not in SETTING_KEYS:
        raise BadRequestError(f'Unknown setting: {key}')
    coerced = _coerce(key, value)

    setting = SystemSetting.query.filter_by(key=key).first()
    if setting is None:
        setting = SystemSetting(key=key, category=SETTING_KEYS[key][2])
        db.session.add(setting)
    # Decimal nije JSON serijalizabilan
    setting.value = str(coerced) if isinstance(coerced, Decimal) else coerced
    db.session.commit()

    logger.info(f"System setting {key} updated to {setting.value}")
    return setting
