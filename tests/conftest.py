import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./feeledger-unused.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("PROPAGATION_CONCURRENCY", "1")
os.environ.setdefault("CURRENT_ACADEMIC_YEAR", "2025")
os.environ.setdefault("CURRENT_TERM", "TERM1")

from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from feeledger.auth.permissions import permissions_for_role
from feeledger.auth.schemas import CurrentUser
from feeledger.auth.security import create_access_token
from feeledger.core.models import (
    FeeCategory,
    Guardian,
    SchoolClass,
    StaffUser,
    Student,
    StudentFee,
)
from feeledger.db.session import Base, get_db, get_session_factory
from feeledger.main import app


@pytest.fixture()
async def engine(tmp_path):
    """Fresh SQLite file per test; separate sessions see each other's commits like in production."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'feeledger.db'}", echo=False, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture()
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app, using the per-test database."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture()
async def admin_user(db_session: AsyncSession) -> StaffUser:
    user = StaffUser(full_name="Bursar Admin", email="admin@school.test", role="ADMIN", status="ACTIVE")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture()
def actor(admin_user: StaffUser) -> CurrentUser:
    return CurrentUser(id=admin_user.id, role=admin_user.role, permissions=permissions_for_role(admin_user.role))


@pytest.fixture()
def auth_headers(admin_user: StaffUser) -> dict:
    token = create_access_token(subject={"sub": str(admin_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def make_class(db_session: AsyncSession):
    async def _make(name: str = "Grade 4") -> SchoolClass:
        obj = SchoolClass(name=name, is_active=True)
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make


@pytest.fixture()
def make_category(db_session: AsyncSession):
    async def _make(code: str, name: Optional[str] = None, frequency: str = "termly") -> FeeCategory:
        obj = FeeCategory(name=name or code.title(), code=code, frequency=frequency)
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession):
    async def _make(
        admission_number: str,
        phone: Optional[str] = None,
        school_class: Optional[SchoolClass] = None,
        is_active: bool = True,
    ) -> Student:
        obj = Student(
            admission_number=admission_number,
            full_name=f"Learner {admission_number}",
            phone=phone,
            class_id=school_class.id if school_class else None,
            is_active=is_active,
        )
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make


@pytest.fixture()
def make_guardian(db_session: AsyncSession):
    async def _make(phone: str, *students: Student) -> Guardian:
        obj = Guardian(full_name="Parent", phone=phone, students=list(students))
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make


@pytest.fixture()
def make_fee_line(db_session: AsyncSession):
    async def _make(
        student: Student,
        category: FeeCategory,
        amount_due: int,
        academic_year: int = 2025,
        term: Optional[str] = "TERM1",
        amount_paid: int = 0,
        locked: bool = False,
        status: str = "unpaid",
    ) -> StudentFee:
        obj = StudentFee(
            student_id=student.id,
            fee_category_id=category.id,
            term=term,
            academic_year=academic_year,
            base_amount=amount_due,
            amount_due=amount_due,
            amount_paid=amount_paid,
            locked=locked,
            status=status,
        )
        db_session.add(obj)
        await db_session.commit()
        return obj

    return _make
