"""
Dependencies FastAPI para autenticação, autorização e auditoria.
"""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from school_library.core.security import decode_token
from school_library.db.session import get_db
from school_library.models.enums import TeacherRole
from school_library.models.teacher import Teacher
from school_library.repositories.teacher import TeacherRepository
from school_library.schemas.audit import AuditContext

# Scheme Bearer para extrair token do header Authorization
security = HTTPBearer()


async def get_current_teacher(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Teacher:
    """
    Dependency que retorna o professor autenticado.

    Extrai o token JWT do header Authorization, decodifica e
    busca o professor no banco (ativo e não removido).

    Raises:
        HTTPException 401: Token inválido, expirado ou conta indisponível
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token inválido ou expirado",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if payload is None:
        raise credentials_exception

    teacher_id: str | None = payload.get("sub")
    if teacher_id is None:
        raise credentials_exception

    try:
        teacher_uuid = UUID(teacher_id)
    except ValueError:
        raise credentials_exception

    teacher = await TeacherRepository(db).get_by_id(teacher_uuid)
    if teacher is None or not teacher.is_active:
        raise credentials_exception

    return teacher


async def require_admin(
    current_teacher: Annotated[Teacher, Depends(get_current_teacher)],
) -> Teacher:
    """
    Dependency que exige que o professor seja ADMIN.

    Raises:
        HTTPException 403: Professor não é admin
    """
    if current_teacher.role != TeacherRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a administradores",
        )
    return current_teacher


def client_ip(request: Request) -> str | None:
    """IP do cliente, respeitando X-Forwarded-For quando atrás de proxy."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def request_context(request: Request, actor_id: UUID | None = None) -> AuditContext:
    """Monta o contexto de auditoria a partir da requisição."""
    user_agent = request.headers.get("User-Agent")
    return AuditContext(
        actor_id=actor_id,
        ip_address=client_ip(request),
        user_agent=user_agent[:500] if user_agent else None,
    )


async def get_audit_context(
    request: Request,
    current_teacher: Annotated[Teacher, Depends(get_current_teacher)],
) -> AuditContext:
    """Contexto de auditoria do professor autenticado."""
    return request_context(request, current_teacher.id)


# Type aliases para uso nos endpoints
CurrentTeacher = Annotated[Teacher, Depends(get_current_teacher)]
AdminTeacher = Annotated[Teacher, Depends(require_admin)]
Audit = Annotated[AuditContext, Depends(get_audit_context)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
