"""
Flask ekstenzije - centralizovana inicijalizacija svih ekstenzija.
Ekstenzije se inicijalizuju ovde, a povezuju sa app-om u __init__.py.
"""

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# SQLAlchemy - ORM za rad sa bazom podataka
# Koristi se za sve modele (Subscription, Delivery, Bill, itd.)
db = SQLAlchemy()

# Flask-Migrate - Alembic wrapper za migracije baze
# Komande: flask db migrate, flask db upgrade
migrate = Migrate()
