from enum import Enum


class ActorRoleEnum(str, Enum):
    vendor = "vendor"
    admin = "admin"


class StepTypeEnum(str, Enum):
    form_text = "form_text"
    form_textarea = "form_textarea"
    checklist = "checklist"
    dynamic_list = "dynamic_list"
    file_upload = "file_upload"
    approval = "approval"
    correction_list = "correction_list"


class StepStatusEnum(str, Enum):
    locked = "locked"
    pending = "pending"
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"
    # Legacy stored value; read as ``approved`` everywhere.
    completed = "completed"


class DeliverableStatusEnum(str, Enum):
    pending = "pending"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"


class DeliverableVersionEnum(str, Enum):
    v1 = "v1"
    v2 = "v2"
    v3 = "v3"
