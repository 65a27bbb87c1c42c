"""
Fixtures compartilhadas para testes.

Cada teste recebe um banco SQLite em memória novo (aiosqlite + StaticPool),
um relógio fixo controlável e um cache sem Redis (falha aberto).
"""

import uuid
from datetime import datetime, timedelta
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from school_library.core.cache import CacheService
from school_library.core.security import create_access_token, hash_password
from school_library.db.session import create_engine_for, create_session_factory, get_db, init_models
from school_library.main import app
from school_library.models.book import BookCopy, BookTitle
from school_library.models.enums import CopyCondition, CopyStatus, TeacherRole
from school_library.models.student import Student
from school_library.models.teacher import Teacher
from school_library.schemas.audit import AuditContext

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ==========================================
# Event loop configuration
# ==========================================

@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==========================================
# Relógio
# ==========================================

class FakeClock:
    """Relógio fixo; ``advance`` move o tempo para frente."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, 0))


@pytest.fixture
def cache() -> CacheService:
    """Cache sem Redis inicializado: toda leitura é miss."""
    return CacheService()


# ==========================================
# Database fixtures
# ==========================================

@pytest.fixture
async def test_engine():
    """
    Engine SQLite em memória compartilhado pelas sessões do teste.

    StaticPool mantém uma única conexão, senão cada sessão veria um
    banco vazio diferente.
    """
    engine = create_engine_for(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return create_session_factory(test_engine)


@pytest.fixture
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessão de banco para testes de service."""
    async with session_factory() as session:
        yield session


# ==========================================
# Dados de exemplo
# ==========================================

@pytest.fixture
async def librarian(test_db: AsyncSession) -> Teacher:
    teacher = Teacher(
        username="m.keller",
        password_hash=hash_password("Senha123!"),
        first_name="Maria",
        last_name="Keller",
        role=TeacherRole.LIBRARIAN,
        is_active=True,
    )
    test_db.add(teacher)
    await test_db.commit()
    return teacher


@pytest.fixture
async def admin(test_db: AsyncSession) -> Teacher:
    teacher = Teacher(
        username="admin",
        password_hash=hash_password("Admin123!"),
        first_name="Administrador",
        last_name="Biblioteca",
        role=TeacherRole.ADMIN,
        is_active=True,
    )
    test_db.add(teacher)
    await test_db.commit()
    return teacher


@pytest.fixture
def ctx(librarian: Teacher) -> AuditContext:
    """Contexto de auditoria do bibliotecário."""
    return AuditContext(actor_id=librarian.id, ip_address="127.0.0.1", user_agent="pytest")


@pytest.fixture
def make_student(test_db: AsyncSession):
    """Factory de estudantes gravados no banco."""

    async def _make(first_name: str = "Lena", class_code: str = "5b", **kwargs) -> Student:
        student = Student(
            first_name=first_name,
            class_code=class_code,
            qr_code=kwargs.pop("qr_code", f"STU-{uuid.uuid4().hex[:8]}"),
            is_active=kwargs.pop("is_active", True),
            **kwargs,
        )
        test_db.add(student)
        await test_db.commit()
        return student

    return _make


@pytest.fixture
def make_title(test_db: AsyncSession):
    """Factory de títulos, opcionalmente com ``copies`` cópias AVAILABLE."""

    async def _make(title: str = "Momo", copies: int = 0, **kwargs) -> BookTitle:
        book = BookTitle(title=title, author=kwargs.pop("author", "Michael Ende"), **kwargs)
        test_db.add(book)
        await test_db.flush()
        for _ in range(copies):
            test_db.add(
                BookCopy(
                    book_title_id=book.id,
                    qr_code=f"CPY-{uuid.uuid4().hex[:8]}",
                    status=CopyStatus.AVAILABLE,
                    condition=CopyCondition.GOOD,
                )
            )
        await test_db.commit()
        return book

    return _make


@pytest.fixture
def make_copy(test_db: AsyncSession):
    """Factory de cópias de um título existente."""

    async def _make(
        title: BookTitle,
        status: CopyStatus = CopyStatus.AVAILABLE,
        condition: CopyCondition = CopyCondition.GOOD,
        **kwargs,
    ) -> BookCopy:
        copy = BookCopy(
            book_title_id=title.id,
            qr_code=kwargs.pop("qr_code", f"CPY-{uuid.uuid4().hex[:8]}"),
            status=status,
            condition=condition,
            **kwargs,
        )
        test_db.add(copy)
        await test_db.commit()
        return copy

    return _make


# ==========================================
# HTTP Client fixtures
# ==========================================

@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Cliente HTTP assíncrono para testes.

    Substitui a dependency get_db para usar o banco em memória do teste.
    O lifespan da aplicação não roda (sem Redis e sem seed).
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==========================================
# Auth fixtures
# ==========================================

@pytest.fixture
def auth_headers(librarian: Teacher) -> dict:
    """Headers de autenticação do bibliotecário."""
    token = create_access_token(subject=str(librarian.id), extra_data={"role": librarian.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin: Teacher) -> dict:
    """Headers de autenticação do admin."""
    token = create_access_token(subject=str(admin.id), extra_data={"role": admin.role.value})
    return {"Authorization": f"Bearer {token}"}
