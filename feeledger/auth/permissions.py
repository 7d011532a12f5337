from typing import Dict

_FULL = {"create": True, "read": True, "update": True}
_READ = {"read": True}

# Role -> module -> action -> allowed
ROLE_PERMISSIONS: Dict[str, Dict[str, Dict[str, bool]]] = {
    "ADMIN": {"fees": _FULL, "students": _FULL, "classes": _FULL},
    "ACCOUNTANT": {"fees": _FULL, "students": _READ, "classes": _READ},
    "TEACHER": {"students": _READ, "classes": _READ},
}


def permissions_for_role(role: str) -> Dict[str, Dict[str, bool]]:
    return ROLE_PERMISSIONS.get((role or "").upper(), {})
