from compliance_workflow.db.repositories.deliverables import DeliverablesRepository
from compliance_workflow.db.repositories.compliance_steps import ComplianceStepsRepository

__all__ = [
    "DeliverablesRepository",
    "ComplianceStepsRepository",
]
