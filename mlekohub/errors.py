"""
Greske servisnog sloja.

Svaka greska nosi poruku i HTTP-kompatibilan kod, tako da ih API sloj
(ako postoji) moze direktno pretvoriti u odgovor.
"""


class ServiceError(Exception):
    """Bazna klasa za greske servisnog sloja."""
    code = 400

    def __init__(self, message: str, code: int = None):
        self.message = message
        if code is not None:
            self.code = code
        super().__init__(message)


class BadRequestError(ServiceError):
    """Neispravan zahtev: los datum, duplikat perioda, prekoracen iznos..."""
    code = 400


class ForbiddenError(ServiceError):
    """Resurs ne pripada korisniku."""
    code = 403


class NotFoundError(ServiceError):
    """Referencirani resurs ne postoji."""
    code = 404


class InvalidConfigurationError(BadRequestError):
    """Neispravna konfiguracija ucestalosti (npr. CUSTOM bez dana)."""


class DuplicateBillError(BadRequestError):
    """Racun za kupca i period vec postoji."""

    def __init__(self, message: str = 'Bill already exists for this period'):
        super().__init__(message)
