import math
from datetime import datetime

from flask import jsonify, request

from core.errors import BadRequestError


def success_response(data=None, message="Opération réussie", status=200):
    return jsonify({
        "success": True,
        "message": message,
        "data": data,
        "timestamp": datetime.utcnow().isoformat() + "Z",
    }), status


def get_json():
    """Request body as a dict, never None."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BadRequestError("Le corps de la requête doit être un objet JSON")
    return data


def int_arg(name, default, minimum=1, maximum=None):
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except ValueError:
        raise BadRequestError(f"{name} doit être un entier")
    if value < minimum:
        raise BadRequestError(f"{name} doit être supérieur ou égal à {minimum}")
    if maximum is not None and value > maximum:
        value = maximum
    return value


def bool_arg(name, default=None):
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def pagination_meta(total, page, limit):
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def iso(value):
    return value.isoformat() if value else None
