"""
Pydantic seme za ulazne podatke servisa.
"""

from pydantic import ValidationError

from ..errors import BadRequestError


def parse_input(schema, data):
    """
    Validira ulaz (dict ili vec instanca seme) i vraca instancu seme.

    Raises:
        BadRequestError: Ako podaci nisu validni (poruka prve greske)
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data or {})
    except ValidationError as e:
        first = e.errors()[0]
        field = '.'.join(str(part) for part in first.get('loc', ()))
        message = first.get('msg', 'Invalid input')
        raise BadRequestError(f'{field}: {message}' if field else message)
