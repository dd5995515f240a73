# Overview: Lookups over the static permission definitions.

from .definitions import PERMISSION_DEFINITIONS

_BY_CODE = {perm[0]: perm for perm in PERMISSION_DEFINITIONS}


def _as_dict(perm) -> dict:
    code, name, description, category = perm
    return {"code": code, "name": name, "description": description, "category": category}


def get_all_permission_codes() -> list[str]:
    return list(_BY_CODE)


def get_permissions_by_category(category: str) -> list[dict]:
    return [_as_dict(perm) for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permissions_grouped() -> dict[str, list[dict]]:
    """Permission definitions keyed by category, in definition order."""
    grouped: dict[str, list[dict]] = {}
    for perm in PERMISSION_DEFINITIONS:
        grouped.setdefault(perm[3], []).append(_as_dict(perm))
    return grouped


def get_permission_definition(code: str) -> dict | None:
    perm = _BY_CODE.get(code)
    return _as_dict(perm) if perm else None


def validate_permission_code(code: str) -> bool:
    return code in _BY_CODE
