from typing import Dict, Iterable, Optional

# Shipping address and payment detail fields that are safe to log unmasked
PUBLIC_KEYS = frozenset({"county", "district", "postal_code", "region"})


def mask_value(value):
    if not isinstance(value, str):
        return value
    if "@" in value:  # email
        name, _, domain = value.partition("@")
        return (name[:2] + "***@" + domain) if name else "***@" + domain
    if value.isdigit() and len(value) >= 4:  # phone numbers, account digits
        return "***" + value[-2:]
    if len(value) > 12:
        return value[:4] + "..." + value[-4:]
    return "***"


def sanitize_payload(payload: Optional[Dict], allowed_keys: Optional[Iterable[str]] = None) -> Dict:
    """Return a filtered copy of payload with only allowed keys and masked values.

    Keys in ``PUBLIC_KEYS`` are kept as-is; with no ``allowed_keys`` every key
    of the payload is kept (masked).
    """
    if not payload:
        return {}
    keys = payload.keys() if allowed_keys is None else allowed_keys
    result = {}
    for key in keys:
        if key in payload:
            result[key] = payload[key] if key in PUBLIC_KEYS else mask_value(payload[key])
    return result
