from __future__ import annotations

from dataclasses import dataclass

from compliance_workflow.db.enums import ActorRoleEnum
from compliance_workflow.workflow.errors import CapabilityError


@dataclass(frozen=True)
class Capabilities:
    """What the current actor may do to a step, independent of the step's status."""

    can_edit: bool = False
    can_decide: bool = False

    @classmethod
    def for_role(cls, role: ActorRoleEnum | str) -> "Capabilities":
        role = ActorRoleEnum(role)
        if role == ActorRoleEnum.vendor:
            return cls(can_edit=True)
        return cls(can_decide=True)

    def require_edit(self) -> None:
        if not self.can_edit:
            raise CapabilityError(capability="edit")

    def require_decide(self) -> None:
        if not self.can_decide:
            raise CapabilityError(capability="decide")


SUBMITTER = Capabilities(can_edit=True)
REVIEWER = Capabilities(can_decide=True)
