"""
Konfiguracija aplikacije - podesavanja za razlicita okruzenja.
Ucitava vrednosti iz environment varijabli sa fallback na defaults.
"""

import os
from dotenv import load_dotenv

# Ucitaj .env fajl ako postoji
load_dotenv()


class Config:
    """
    Bazna konfiguracija - zajednicka podesavanja za sva okruzenja.
    """

    # Flask core
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-key-change-in-production')

    # Database
    SQLALCHEMY_DATABASE_URI = os.getenv(
        'DATABASE_URL',
        'postgresql://localhost:5432/mlekohub'
    )
    # Heroku koristi postgres:// umesto postgresql://, moramo popraviti
    if SQLALCHEMY_DATABASE_URI.startswith('postgres://'):
        SQLALCHEMY_DATABASE_URI = SQLALCHEMY_DATABASE_URI.replace(
            'postgres://', 'postgresql://', 1
        )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,  # Proveri konekciju pre upotrebe
        'pool_recycle': 300,    # Recikliraj konekcije nakon 5 min
    }

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # ========================
    # ENGINE DEFAULTS
    # ========================
    # Koriste se kada u system_setting tabeli nema odgovarajuceg kljuca.

    ADHOC_MIN_ADVANCE_DAYS = int(os.getenv('ADHOC_MIN_ADVANCE_DAYS', 1))
    ADHOC_MAX_ADVANCE_DAYS = int(os.getenv('ADHOC_MAX_ADVANCE_DAYS', 30))
    ADHOC_DEFAULT_CAPACITY = int(os.getenv('ADHOC_DEFAULT_CAPACITY', 50))
    ADHOC_CANCEL_BEFORE_HOURS = int(os.getenv('ADHOC_CANCEL_BEFORE_HOURS', 12))
    TAX_PERCENTAGE = os.getenv('TAX_PERCENTAGE', '0')  # % (GST)
    MAX_PAUSE_DAYS = int(os.getenv('MAX_PAUSE_DAYS', 30))
    BILL_DUE_DAYS = int(os.getenv('BILL_DUE_DAYS', 10))  # Rok placanja posle kraja perioda

    # Broj dana unapred za koji se generise raspored (flask generate-schedule)
    SCHEDULE_DAYS_AHEAD = int(os.getenv('SCHEDULE_DAYS_AHEAD', 7))


class DevelopmentConfig(Config):
    """
    Razvojna konfiguracija - debug mode ukljucen.
    """
    DEBUG = True
    SQLALCHEMY_ECHO = os.getenv('SQLALCHEMY_ECHO', 'false').lower() == 'true'
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'DEBUG')


class TestingConfig(Config):
    """
    Test konfiguracija - koristi se za pytest.
    """
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    TAX_PERCENTAGE = '0'


class ProductionConfig(Config):
    """
    Produkciona konfiguracija.
    """
    DEBUG = False

    SECRET_KEY = os.getenv('SECRET_KEY', '')

    # Stroza engine podesavanja za produkciju
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 300,
        'pool_size': 10,
        'max_overflow': 20,
    }


def validate_production_config(app):
    """
    Validira production konfiguraciju pri startu aplikacije.

    Raises:
        ValueError: Ako SECRET_KEY ili DATABASE_URL nisu postavljeni
    """
    if os.getenv('FLASK_ENV') != 'production':
        return  # Preskoci validaciju ako nismo u produkciji

    secret_key = app.config.get('SECRET_KEY', '')
    if not secret_key or secret_key == 'dev-secret-key-change-in-production':
        raise ValueError(
            "CRITICAL: SECRET_KEY environment variable must be set in production!\n"
            "Generate with: python -c \"import secrets; print(secrets.token_hex(32))\""
        )
    if not os.getenv('DATABASE_URL'):
        raise ValueError("CRITICAL: DATABASE_URL environment variable must be set in production!")


# Mapiranje imena okruzenja na config klase
config_by_name = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': DevelopmentConfig,
}


def get_config():
    """
    Vraca config klasu na osnovu FLASK_ENV environment varijable.
    Default je development.
    """
    env = os.getenv('FLASK_ENV', 'development')
    return config_by_name.get(env, DevelopmentConfig)
