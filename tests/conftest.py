import os
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_compliance_workflow.db")
os.environ.setdefault("BACKEND_CORS_ORIGINS", "http://localhost:5173")
os.environ.setdefault("AUTOSAVE_QUIET_PERIOD_SECONDS", "0.01")

import pytest
from fastapi.testclient import TestClient

from compliance_workflow.auth.dependencies import AuthContext, get_current_user
from compliance_workflow.db import models  # noqa: F401
from compliance_workflow.db.base import Base, SessionLocal, engine, init_db
from compliance_workflow.db.deps import get_session
from compliance_workflow.db.enums import ActorRoleEnum, StepStatusEnum, StepTypeEnum
from compliance_workflow.db.repositories import ComplianceStepsRepository, DeliverablesRepository
from compliance_workflow.main import app


TEST_ORG_ID = "org_test"
TEST_PROJECT_ID = "proj_test"


@pytest.fixture()
def db_session():
    Base.metadata.drop_all(bind=engine)
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def seed_workflow(db_session):
    """Create a deliverable with the given steps; returns ``(deliverable, steps)``."""

    def _seed(steps, *, org_id: str = TEST_ORG_ID, project_id: str = TEST_PROJECT_ID, name: str = "Hero video"):
        deliverable = DeliverablesRepository(db_session).create(org_id=org_id, project_id=project_id, name=name)
        records = ComplianceStepsRepository(db_session).create_many(deliverable_id=deliverable.id, steps=steps)
        return deliverable, records

    return _seed


@pytest.fixture()
def standard_steps():
    return [
        {
            "name": "Usage rights statement",
            "step_type": StepTypeEnum.form_textarea,
            "form_data": None,
        },
        {
            "name": "Pre-delivery checklist",
            "step_type": StepTypeEnum.checklist,
            "checklist_items": [
                {"id": "nda", "label": "NDA signed", "checked": False},
                {"id": "music", "label": "Music licensed", "checked": False},
            ],
        },
        {
            "name": "Talent releases",
            "step_type": StepTypeEnum.dynamic_list,
            "dynamic_list_data": None,
        },
        {
            "name": "Legal sign-off",
            "step_type": StepTypeEnum.approval,
            "status": StepStatusEnum.submitted,
        },
    ]


@pytest.fixture()
def act_as():
    """Switch the authenticated actor used by the API client."""

    def _act_as(role: ActorRoleEnum, *, org_id: str = TEST_ORG_ID, user_id: str = "user_test") -> AuthContext:
        auth = AuthContext(user_id=user_id, org_id=org_id, role=role)
        app.dependency_overrides[get_current_user] = lambda: auth
        return auth

    return _act_as


@pytest.fixture()
def api_client(db_session, act_as):
    def get_session_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_session] = get_session_override
    act_as(ActorRoleEnum.vendor)
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.dependency_overrides.clear()
