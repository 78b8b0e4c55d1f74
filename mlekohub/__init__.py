"""
MlekoHub - engine za pretplate na dostavu mleka.

Ovaj modul sadrzi app factory funkciju koja kreira i konfigurise
Flask aplikaciju: baza, migracije, error handleri i CLI komande
za periodicne taskove (raspored, racuni, statusi).
"""

import logging
import click
from datetime import date
from flask import Flask, jsonify

from .config import get_config, validate_production_config
from .extensions import db, migrate
from .errors import ServiceError


def create_app(config_class=None):
    """
    App factory - kreira i konfigurise Flask aplikaciju.

    Args:
        config_class: Opciona config klasa. Ako nije proslednjena,
                     koristi se config na osnovu FLASK_ENV varijable.

    Returns:
        Konfigurisana Flask aplikacija.
    """
    app = Flask(__name__)

    # Ucitaj konfiguraciju
    if config_class is None:
        config_class = get_config()
    app.config.from_object(config_class)

    # SECURITY: Validiraj production konfiguraciju
    validate_production_config(app)

    _configure_logging(app)

    # Inicijalizuj ekstenzije
    _init_extensions(app)

    # Registruj error handlere
    _register_error_handlers(app)

    # Registruj CLI komande
    _register_cli_commands(app)

    return app


def _configure_logging(app):
    """Podesava nivo logovanja iz LOG_LEVEL."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
    )
    logging.getLogger('mlekohub').setLevel(level)


def _init_extensions(app):
    """
    Inicijalizuje sve Flask ekstenzije sa app kontekstom.
    """
    # SQLAlchemy - ORM
    db.init_app(app)

    # Flask-Migrate - migracije
    migrate.init_app(app, db)

    # Ucitaj modele da bi ih Flask-Migrate video
    from . import models  # noqa: F401


def _register_error_handlers(app):
    """
    Registruje globalne error handlere.
    Greske servisnog sloja se vracaju kao JSON.
    """

    @app.errorhandler(ServiceError)
    def service_error(error):
        return jsonify({
            'error': type(error).__name__,
            'message': error.message
        }), error.code

    @app.errorhandler(500)
    def internal_error(error):
        # Loguj gresku za debugging
        app.logger.error(f'Internal Server Error: {error}')
        return jsonify({
            'error': 'Internal Server Error',
            'message': 'Doslo je do greske na serveru'
        }), 500


def _echo_errors(errors):
    if errors:
        click.echo(f'Greske: {len(errors)}')
        for err in errors:
            click.echo(f'  - {err}')


def _register_cli_commands(app):
    """
    Registruje custom CLI komande za Flask.
    Koriste se sa: flask <command>
    """

    @app.cli.command('generate-schedule')
    @click.option('--start', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Prvi dan (default: sutra)')
    @click.option('--end', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Poslednji dan (default: start + SCHEDULE_DAYS_AHEAD)')
    def generate_schedule_command(start, end):
        """
        Generise isporuke za aktivne i pauzirane pretplate.

        Idempotentno - postojece isporuke se preskacu.
        Preporuka: Pokretati jednom dnevno.
        """
        from .services.billing_tasks import billing_tasks

        click.echo('Generisem raspored isporuka...')
        stats = billing_tasks.generate_schedule(
            start=start.date() if start else None,
            end=end.date() if end else None
        )

        click.echo(f'Pretplata: {stats["subscriptions"]}')
        click.echo(f'Kreirano: {stats["created"]}')
        click.echo(f'Preskoceno (vec postoji): {stats["skipped"]}')
        _echo_errors(stats['errors'])
        click.echo('Gotovo!')

    @app.cli.command('generate-bills')
    @click.option('--start', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Pocetak perioda (default: prvi dan prethodnog meseca)')
    @click.option('--end', type=click.DateTime(formats=['%Y-%m-%d']), default=None,
                  help='Kraj perioda (default: poslednji dan prethodnog meseca)')
    def generate_bills_command(start, end):
        """
        Generise racune za sve kupce sa aktivnom pretplatom.

        Preporuka: Pokretati prvog u mesecu.
        """
        from .services.billing_tasks import billing_tasks

        if bool(start) != bool(end):
            raise click.UsageError('--start i --end se zadaju zajedno')

        click.echo('Generisem racune...')
        stats = billing_tasks.generate_bills(
            start=start.date() if start else None,
            end=end.date() if end else None
        )

        click.echo(f'Generisano: {stats["generated"]}')
        click.echo(f'Preskoceno (vec postoji): {stats["skipped"]}')
        _echo_errors(stats['errors'])
        click.echo('Gotovo!')

    @app.cli.command('refresh-subscriptions')
    def refresh_subscriptions_command():
        """
        Zavrsene pauze -> ACTIVE, istekle pretplate -> EXPIRED.
        """
        from .services.billing_tasks import billing_tasks

        click.echo('Osvezavam statuse pretplata...')
        stats = billing_tasks.refresh_subscriptions()

        click.echo(f'Nastavljeno: {stats["resumed"]}')
        click.echo(f'Isteklo: {stats["expired"]}')
        _echo_errors(stats['errors'])
        click.echo('Gotovo!')

    @app.cli.command('mark-overdue-bills')
    def mark_overdue_bills_command():
        """
        Oznacava racune kojima je prosao rok placanja.
        """
        from .services.billing_tasks import billing_tasks

        click.echo('Oznacavam prekoracene racune...')
        stats = billing_tasks.mark_overdue_bills()

        click.echo(f'Oznaceno: {stats["marked"]}')
        click.echo('Gotovo!')

    @app.cli.command('deliveries-daily')
    def deliveries_daily_command():
        """
        Pokrece sve dnevne taskove.

        Kombinuje: refresh-subscriptions, generate-schedule,
                   mark-overdue-bills (i generate-bills prvog u mesecu)

        Preporuka: Pokretati jednom dnevno (npr. 04:00).
        """
        from .services.billing_tasks import billing_tasks

        click.echo('=' * 50)
        click.echo('DAILY TASKS')
        click.echo('=' * 50)

        result = billing_tasks.run_daily(today=date.today())

        click.echo('\n[1/4] Pretplate')
        click.echo(f'  Resumed: {result["subscriptions"]["resumed"]}')
        click.echo(f'  Expired: {result["subscriptions"]["expired"]}')

        click.echo('\n[2/4] Raspored')
        click.echo(f'  Created: {result["schedule"]["created"]}')
        click.echo(f'  Skipped: {result["schedule"]["skipped"]}')

        click.echo('\n[3/4] Prekoraceni racuni')
        click.echo(f'  Marked: {result["overdue"]["marked"]}')

        click.echo('\n[4/4] Racuni')
        if result['bills'] is None:
            click.echo('  Preskoceno (nije prvi u mesecu)')
        else:
            click.echo(f'  Generated: {result["bills"]["generated"]}')
            click.echo(f'  Skipped: {result["bills"]["skipped"]}')

        click.echo('\n' + '=' * 50)
        click.echo('DAILY TASKS - ZAVRSENO')
        click.echo('=' * 50)
