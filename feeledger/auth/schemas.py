from typing import Dict
from uuid import UUID

from pydantic import BaseModel


class CurrentUser(BaseModel):
    """Lightweight representation of the authenticated staff member for RBAC checks and audit rows."""

    id: UUID
    role: str
    permissions: Dict[str, Dict[str, bool]]
