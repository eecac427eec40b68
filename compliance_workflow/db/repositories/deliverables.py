from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select

from compliance_workflow.db.models import Deliverable
from compliance_workflow.db.repositories.base import Repository, parse_uuid


class DeliverablesRepository(Repository):
    def get(self, *, org_id: str, deliverable_id: str | UUID) -> Optional[Deliverable]:
        key = parse_uuid(deliverable_id)
        if key is None:
            return None
        stmt = select(Deliverable).where(Deliverable.org_id == org_id, Deliverable.id == key)
        return self.session.scalars(stmt).first()

    def get_for_project(
        self, *, org_id: str, project_id: str, deliverable_id: str | UUID
    ) -> Optional[Deliverable]:
        deliverable = self.get(org_id=org_id, deliverable_id=deliverable_id)
        if deliverable is None or deliverable.project_id != project_id:
            return None
        return deliverable

    def create(self, *, org_id: str, project_id: str, name: str, **fields: Any) -> Deliverable:
        deliverable = Deliverable(org_id=org_id, project_id=project_id, name=name, **fields)
        return self.save(deliverable)
