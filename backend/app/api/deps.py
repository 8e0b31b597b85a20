from collections.abc import Callable, Generator, Iterable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.config import Settings, get_settings
from app.core.security import decode_token
from app.db.session import SessionLocal
from app.models.teacher import Teacher, TeacherRole
from app.services.notifications import SessionNotificationSink
from app.services.substitution_controller import SubstitutionAssignmentController

security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_app_settings() -> Settings:
    return get_settings()


def get_current_teacher(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Teacher:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        teacher_id = payload.get("sub")
        if teacher_id is None:
            raise credentials_exception
    except JWTError as exc:
        raise credentials_exception from exc

    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise credentials_exception
    if not teacher.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teacher account is inactive")
    return teacher


def require_roles(*roles: TeacherRole) -> Callable[[Teacher], Teacher]:
    allowed_roles: Iterable[TeacherRole] = set(roles)

    def role_checker(current_teacher: Teacher = Depends(get_current_teacher)) -> Teacher:
        if current_teacher.role not in allowed_roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return current_teacher

    return role_checker


def get_substitution_controller(
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> SubstitutionAssignmentController:
    return SubstitutionAssignmentController(db, sink=SessionNotificationSink(db), settings=settings)
