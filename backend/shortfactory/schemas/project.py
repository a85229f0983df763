"""Project entity and the ten-stage production order."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, SerializeAsAny, computed_field, field_validator

from shortfactory.schemas.stage import STAGE_ORDER, Stage
from shortfactory.schemas.stage_payloads import StagePayload, coerce_payload

__all__ = ["STAGE_ORDER", "Stage", "ProjectFlag", "ProjectStatus", "Project", "utcnow"]


class ProjectFlag(str, Enum):
    """Stored status flags. Everything else about status is derived."""

    PROCESSING = "processing"
    ERROR = "error"
    REVIEW = "review"


class ProjectStatus(str, Enum):
    """Effective status shown to users and branched on by orchestration."""

    PENDING = "pending"
    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"
    REVIEW = "review"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Project(BaseModel):
    """One piece of content moving through the stage pipeline."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    channel_id: str
    title: str
    current_stage: Stage = Stage.REFERENCE
    flag: Optional[ProjectFlag] = None
    stage_data: dict[Stage, SerializeAsAny[StagePayload]] = Field(default_factory=dict)
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @field_validator("stage_data", mode="before")
    @classmethod
    def coerce_stage_payloads(cls, v: Any):
        """Rebuild each stored payload with the model registered for its stage."""
        if not isinstance(v, dict):
            return v
        return {Stage(key): coerce_payload(Stage(key), value) for key, value in v.items()}

    @computed_field
    @property
    def status(self) -> ProjectStatus:
        from shortfactory.orchestrator.state import effective_status

        return effective_status(self)

    def payload(self, stage: Stage) -> Optional[StagePayload]:
        return self.stage_data.get(stage)
