"""
Product specification handling.

Writes arrive as a list of {key, value} pairs and are stored as a keyed
mapping. Stored data has historically shown up in several shapes (missing,
a mapping, a plain object, a list of pairs), so reads normalise every shape
to one ordered list of {key, value} pairs before it reaches the API.
"""
from collections.abc import Mapping


def specifications_to_mapping(pairs):
    """Collapse [{key, value}, ...] into {key: value}; the last duplicate wins"""
    if not pairs:
        return {}
    mapping = {}
    for pair in pairs:
        if isinstance(pair, Mapping):
            key, value = pair.get('key'), pair.get('value')
        else:
            key, value = pair
        if key is None or key == '':
            continue
        mapping[str(key)] = '' if value is None else str(value)
    return mapping


def normalize_specifications(raw):
    """Return specifications as an ordered list of {'key', 'value'} dicts"""
    if raw is None or raw == '':
        return []

    if isinstance(raw, Mapping):
        entries = raw.items()
    elif isinstance(raw, (list, tuple)):
        entries = []
        for item in raw:
            if isinstance(item, Mapping) and 'key' in item:
                entries.append((item['key'], item.get('value')))
            elif isinstance(item, (list, tuple)) and len(item) == 2:
                entries.append((item[0], item[1]))
    elif hasattr(raw, '__dict__'):
        entries = [(k, v) for k, v in vars(raw).items() if not k.startswith('_')]
    else:
        return []

    return [
        {'key': str(key), 'value': '' if value is None else str(value)}
        for key, value in entries
    ]
