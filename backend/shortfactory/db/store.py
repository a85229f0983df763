"""Repositories persisting the pydantic domain models as JSON rows."""

import logging
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortfactory.db.engine import async_session
from shortfactory.db.models import Base, ChannelProfileRecord, JobRecord, ProjectRecord
from shortfactory.schemas.job import Job
from shortfactory.schemas.profile import ChannelProfile
from shortfactory.schemas.project import Project

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class _JsonStore(Generic[ModelT]):
    record_class: type[Base]
    model_class: type[BaseModel]

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_factory = session_factory or async_session

    def _columns(self, item: ModelT) -> dict:
        raise NotImplementedError

    async def load_all(self) -> list[ModelT]:
        async with self._session_factory() as session:
            result = await session.execute(select(self.record_class))
            records = result.scalars().all()
        items = []
        for record in records:
            try:
                items.append(self.model_class.model_validate(record.data))
            except ValueError as e:
                logger.warning(f"Skipping unreadable {self.record_class.__tablename__} row {record.id}: {e}")
        return items

    async def get(self, item_id: str) -> Optional[ModelT]:
        async with self._session_factory() as session:
            record = await session.get(self.record_class, item_id)
        return self.model_class.model_validate(record.data) if record else None

    async def save(self, item: ModelT) -> None:
        async with self._session_factory() as session:
            await session.merge(
                self.record_class(id=item.id, data=item.model_dump(mode="json"), **self._columns(item))
            )
            await session.commit()

    async def delete(self, item_id: str) -> None:
        async with self._session_factory() as session:
            await session.execute(delete(self.record_class).where(self.record_class.id == item_id))
            await session.commit()


class ProjectStore(_JsonStore[Project]):
    record_class = ProjectRecord
    model_class = Project

    def _columns(self, item: Project) -> dict:
        return {
            "channel_id": item.channel_id,
            "current_stage": item.current_stage.value,
            "flag": item.flag.value if item.flag else None,
        }


class JobStore(_JsonStore[Job]):
    record_class = JobRecord
    model_class = Job

    def _columns(self, item: Job) -> dict:
        return {"channel_id": item.channel_id, "status": item.status.value, "progress": item.progress}


class ProfileStore(_JsonStore[ChannelProfile]):
    record_class = ChannelProfileRecord
    model_class = ChannelProfile

    def _columns(self, item: ChannelProfile) -> dict:
        return {"name": item.name}
