from functools import wraps

from flask_jwt_extended import get_jwt, get_jwt_identity, verify_jwt_in_request

from core.errors import ForbiddenError

CUSTOMER = "CUSTOMER"
SELLER = "SELLER"
ENTERPRISE = "ENTERPRISE"
ADMIN = "ADMIN"
SUPER_ADMIN = "SUPER_ADMIN"

ROLES = (CUSTOMER, SELLER, ENTERPRISE, ADMIN, SUPER_ADMIN)
BUYER_ROLES = (CUSTOMER, ENTERPRISE)
SELLER_ROLES = (SELLER, ENTERPRISE, ADMIN, SUPER_ADMIN)
STAFF_ROLES = (ADMIN, SUPER_ADMIN)


def roles_required(*roles):
    """Require a valid access token whose role claim is one of ``roles``."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            verify_jwt_in_request()
            if roles and get_jwt().get("role") not in roles:
                raise ForbiddenError("Accès refusé pour ce rôle")
            return fn(*args, **kwargs)
        return wrapper
    return decorator


def current_user_id():
    return int(get_jwt_identity())


def current_role():
    return get_jwt().get("role")
