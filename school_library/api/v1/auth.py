"""
Endpoints de autenticação da equipe.

Contratos:
    - POST /auth/login: Login do professor, retorna JWT
    - GET /auth/me: Dados do professor autenticado
    - POST /auth/teachers: Cadastra professor (somente ADMIN)
"""

from fastapi import APIRouter, Request, status

from school_library.core.deps import AdminTeacher, Audit, CurrentTeacher, DbSession, request_context
from school_library.schemas.auth import LoginRequest, TeacherCreate, TeacherRead, TeacherWithToken
from school_library.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post(
    "/login",
    response_model=TeacherWithToken,
    summary="Autenticar professor",
    description="Retorna token JWT para autenticação nos endpoints protegidos.",
)
async def login(
    data: LoginRequest,
    db: DbSession,
    request: Request,
) -> TeacherWithToken:
    """
    Login de professor/bibliotecário.

    Uso: `Authorization: Bearer <access_token>`
    """
    service = AuthService(db)
    return await service.login(data.username, data.password, request_context(request))


@router.get(
    "/me",
    response_model=TeacherRead,
    summary="Dados do professor autenticado",
)
async def get_me(current_teacher: CurrentTeacher) -> TeacherRead:
    return TeacherRead.model_validate(current_teacher)


@router.post(
    "/teachers",
    response_model=TeacherRead,
    status_code=status.HTTP_201_CREATED,
    summary="Cadastrar professor",
    description="Cria conta de professor ou bibliotecário. **Requer ADMIN.**",
)
async def create_teacher(
    data: TeacherCreate,
    db: DbSession,
    admin: AdminTeacher,
    ctx: Audit,
) -> TeacherRead:
    service = AuthService(db)
    teacher = await service.create_teacher(data, ctx)
    return TeacherRead.model_validate(teacher)
