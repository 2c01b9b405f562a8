def is_authenticated(user) -> bool:
    return bool(user is not None and getattr(user, "is_authenticated", False))


def is_admin(user) -> bool:
    """Marketplace administrators are Django staff or superusers."""
    if not is_authenticated(user):
        return False
    return bool(getattr(user, "is_superuser", False) or getattr(user, "is_staff", False))


def is_owner(user, listing) -> bool:
    """True when ``user`` owns ``listing``."""
    if not is_authenticated(user) or listing is None:
        return False
    return listing.owner_id == user.pk
