from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.deps import get_app_settings, get_current_teacher, get_db, require_roles
from app.core.config import Settings
from app.models.teacher import Teacher, TeacherRole, TeacherStatus
from app.schemas.stats import TeacherStatisticsOut
from app.schemas.teacher import AttendanceRecomputeOut, AvailabilityUpdate, TeacherOut
from app.services.attendance import recompute_attendance_percentage
from app.services.audit import log_activity
from app.services.stats import teacher_statistics

router = APIRouter()


@router.get("/teachers", response_model=list[TeacherOut])
def list_teachers(
    role: TeacherRole | None = Query(default=None),
    teacher_status: TeacherStatus | None = Query(default=None, alias="status"),
    subject: str | None = Query(default=None, max_length=200),
    _: Teacher = Depends(require_roles(TeacherRole.admin)),
    db: Session = Depends(get_db),
) -> list[Teacher]:
    query = select(Teacher).order_by(Teacher.name, Teacher.id)
    if role is not None:
        query = query.where(Teacher.role == role)
    if teacher_status is not None:
        query = query.where(Teacher.status == teacher_status)
    if subject:
        query = query.where(Teacher.subject.ilike(f"%{subject.strip()}%"))
    return list(db.execute(query).scalars())


@router.get("/teachers/me", response_model=TeacherOut)
def get_me(current_teacher: Teacher = Depends(get_current_teacher)) -> Teacher:
    return current_teacher


@router.get("/teachers/me/stats", response_model=TeacherStatisticsOut)
def get_my_statistics(
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> TeacherStatisticsOut:
    return TeacherStatisticsOut.model_validate(teacher_statistics(db, current_teacher.id))


@router.put("/teachers/me/availability", response_model=TeacherOut)
def update_my_availability(
    payload: AvailabilityUpdate,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.teacher)),
    db: Session = Depends(get_db),
) -> Teacher:
    current_teacher.available = payload.available
    if payload.workload is not None:
        current_teacher.workload = payload.workload
    log_activity(
        db,
        actor_id=current_teacher.id,
        action="teacher.availability.update",
        entity_type="teacher",
        entity_id=current_teacher.id,
        details=payload.model_dump(exclude_none=True),
    )
    db.commit()
    db.refresh(current_teacher)
    return current_teacher


@router.post("/teachers/{teacher_id}/attendance/recompute", response_model=AttendanceRecomputeOut)
def recompute_attendance(
    teacher_id: str,
    current_teacher: Teacher = Depends(require_roles(TeacherRole.admin)),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AttendanceRecomputeOut:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Teacher not found")

    percentage = recompute_attendance_percentage(db, teacher, window_days=settings.attendance_window_days)
    if percentage is not None:
        log_activity(
            db,
            actor_id=current_teacher.id,
            action="teacher.attendance.recompute",
            entity_type="teacher",
            entity_id=teacher.id,
            details={"attendance_percentage": percentage},
        )
        db.commit()
        db.refresh(teacher)
    return AttendanceRecomputeOut(
        teacher_id=teacher.id,
        attendance_percentage=teacher.attendance_percentage,
        updated=percentage is not None,
    )
