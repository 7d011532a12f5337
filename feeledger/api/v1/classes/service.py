from typing import List, Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from feeledger.core.exceptions import ServiceError
from feeledger.core.models import SchoolClass

from .schemas import ClassCreate, ClassResponse


async def create_class(db: AsyncSession, payload: ClassCreate) -> ClassResponse:
    obj = SchoolClass(
        name=payload.name.strip(),
        display_order=payload.display_order,
        is_active=True,
    )
    db.add(obj)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ServiceError("Class name already exists", status.HTTP_409_CONFLICT)
    await db.refresh(obj)
    return ClassResponse.model_validate(obj)


async def list_classes(db: AsyncSession, active_only: bool = True) -> List[ClassResponse]:
    stmt = select(SchoolClass)
    if active_only:
        stmt = stmt.where(SchoolClass.is_active.is_(True))
    stmt = stmt.order_by(SchoolClass.display_order.asc().nullslast(), SchoolClass.name)
    result = await db.execute(stmt)
    return [ClassResponse.model_validate(c) for c in result.scalars().all()]


async def get_class(db: AsyncSession, class_id: UUID) -> Optional[ClassResponse]:
    obj = await db.get(SchoolClass, class_id)
    return ClassResponse.model_validate(obj) if obj else None
