"""
Services - business logic layer.

Servisi sadrze poslovnu logiku engine-a: raspored isporuka, adhoc zahteve
i kapacitet, racune i uplate. Svaki servis radi sa db.session i sam
odlucuje kada radi commit.
"""

from .delivery_service import InsertResult
from .settings_service import EngineSettings, load_settings
from .billing_tasks import billing_tasks, BillingTasksService

__all__ = [
    'InsertResult',
    'EngineSettings',
    'load_settings',
    'billing_tasks',
    'BillingTasksService',
]
