"""
MlekoHub - entry point za Flask CLI i WSGI server.

Primer: flask --app wsgi deliveries-daily
"""

from dotenv import load_dotenv

# Ucitaj .env fajl ako postoji
load_dotenv()

from mlekohub import create_app

app = create_app()
