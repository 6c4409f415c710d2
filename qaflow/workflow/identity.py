"""
Acting principal supplied by the (external) authentication layer.
"""

import uuid
from dataclasses import dataclass

from qaflow.models.enums import MANAGER_ROLES, QA_TEAMS, Role


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    name: str
    role: str

    @property
    def is_qa(self) -> bool:
        return self.role in QA_TEAMS

    @property
    def is_manager(self) -> bool:
        return self.role in MANAGER_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value
