import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from compliance_workflow.workflow.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class Repository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def save(self, obj):
        self.session.add(obj)
        self.commit()
        self.session.refresh(obj)
        return obj

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("Database commit failed", exc_info=exc)
            raise PersistenceFailure("Failed to persist compliance workflow changes") from exc


def parse_uuid(value: str | UUID) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None
