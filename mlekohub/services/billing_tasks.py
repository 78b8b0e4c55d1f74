"""
Billing Tasks - periodicni taskovi engine-a.

Ove funkcije se pozivaju preko Flask CLI komandi (cron / Heroku Scheduler).

Komande:
    flask generate-schedule      # Raspored isporuka (default: sutra + 7 dana)
    flask generate-bills         # Racuni za period (default: prethodni mesec)
    flask refresh-subscriptions  # Zavrsene pauze i istekle pretplate
    flask mark-overdue-bills     # Racuni kojima je prosao rok
    flask deliveries-daily       # Sve dnevno, jednim pozivom
"""

import logging
from datetime import date, timedelta
from dateutil.relativedelta import relativedelta
from flask import current_app

from . import billing_service, delivery_service, subscription_service
from .delivery_dates import month_bounds
from .settings_service import load_settings

logger = logging.getLogger(__name__)


def previous_month(today: date):
    """(prvi, poslednji) dan prethodnog kalendarskog meseca."""
    previous = today.replace(day=1) - relativedelta(months=1)
    return month_bounds(previous.year, previous.month)


class BillingTasksService:
    """
    Servis za automatizovane taskove: raspored, racuni, statusi.
    """

    # =========================================================================
    # GENERATE SCHEDULE - Materijalizacija isporuka za naredne dane
    # =========================================================================

    @staticmethod
    def generate_schedule(start=None, end=None, today=None):
        """
        Generise isporuke za prozor [start, end].

        Default: od sutra, SCHEDULE_DAYS_AHEAD dana unapred.

        Returns:
            dict sa statistikama (created, skipped, subscriptions, errors)
        """
        today = today or date.today()
        start = start or today + timedelta(days=1)
        end = end or start + timedelta(days=current_app.config.get('SCHEDULE_DAYS_AHEAD', 7))
        return delivery_service.generate_schedule(start, end)

    # =========================================================================
    # GENERATE BILLS - Racuni za zavrsen period
    # =========================================================================

    @staticmethod
    def generate_bills(start=None, end=None, today=None):
        """
        Generise racune za period. Default: prethodni kalendarski mesec.

        Returns:
            dict sa statistikama (generated, skipped, errors)
        """
        if start is None or end is None:
            start, end = previous_month(today or date.today())
        return billing_service.generate_bills_for_period(start, end, settings=load_settings())

    # =========================================================================
    # STATUSI
    # =========================================================================

    @staticmethod
    def refresh_subscriptions(today=None):
        """Zavrsene pauze -> ACTIVE, istekle pretplate -> EXPIRED."""
        return subscription_service.refresh_subscription_statuses(today or date.today())

    @staticmethod
    def mark_overdue_bills(today=None):
        """
        Racuni kojima je prosao rok -> OVERDUE.

        Returns:
            dict: {'marked': int}
        """
        return {'marked': billing_service.mark_overdue_bills(today or date.today())}

    @staticmethod
    def run_daily(today=None):
        """
        Dnevni task: osvezi statuse pretplata, generisi raspored,
        oznaci prekoracene racune. Prvog u mesecu i racune za prethodni mesec.

        Returns:
            dict sa rezultatom svakog koraka
        """
        today = today or date.today()
        result = {
            'subscriptions': BillingTasksService.refresh_subscriptions(today),
            'schedule': BillingTasksService.generate_schedule(today=today),
            'overdue': BillingTasksService.mark_overdue_bills(today),
            'bills': None,
        }
        if today.day == 1:
            result['bills'] = BillingTasksService.generate_bills(today=today)

        logger.info(f"Daily tasks finished for {today}")
        return result


# Singleton instanca
billing_tasks = BillingTasksService()
