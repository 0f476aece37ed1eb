"""
CRUD for the reference data around appointments: companies, projects,
phases with their subphases, the phases of a project and team members.
"""
from __future__ import annotations

import logging
from typing import Any, TypeVar

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError

from .db import db_session
from .errors import NotFoundError, ValidationError
from .models import Company, Phase, Project, ProjectPhase, Subphase, User

logger = logging.getLogger(__name__)

M = TypeVar("M")


# =========================
# Generic helpers
# =========================
def _columns(model: type, data: dict[str, Any]) -> dict[str, Any]:
    names = {c.key for c in model.__table__.columns} - {"id", "created_at"}
    return {k: v for k, v in data.items() if k in names}


def _create(model: type[M], data: dict[str, Any]) -> M:
    with db_session() as s:
        obj = model(**_columns(model, data))
        s.add(obj)
        try:
            s.flush()
        except IntegrityError as e:
            raise ValidationError(f"Cannot create {model.__name__}: {e.orig}") from e
        logger.info("%s %s created", model.__name__, obj.id)
        return obj


def _get(model: type[M], obj_id: int) -> M:
    with db_session() as s:
        obj = s.get(model, obj_id)
        if not obj:
            raise NotFoundError(f"{model.__name__} {obj_id} not found.")
        return obj


def _update(model: type[M], obj_id: int, data: dict[str, Any]) -> M:
    with db_session() as s:
        obj = s.get(model, obj_id)
        if not obj:
            raise NotFoundError(f"{model.__name__} {obj_id} not found.")
        for key, value in _columns(model, data).items():
            setattr(obj, key, value)
        try:
            s.flush()
        except IntegrityError as e:
            raise ValidationError(f"Cannot update {model.__name__}: {e.orig}") from e
        return obj


def _delete(model: type, obj_id: int) -> bool:
    with db_session() as s:
        obj = s.get(model, obj_id)
        if not obj:
            return False
        s.delete(obj)
        logger.info("%s %s deleted", model.__name__, obj_id)
        return True


def _list(model: type[M], *order_by) -> list[M]:
    with db_session() as s:
        return list(s.scalars(select(model).order_by(*order_by)))


# =========================
# Companies
# =========================
def list_companies() -> list[Company]:
    return _list(Company, Company.name)


def get_company(company_id: int) -> Company:
    return _get(Company, company_id)


def create_company(data: dict[str, Any]) -> Company:
    return _create(Company, data)


def update_company(company_id: int, data: dict[str, Any]) -> Company:
    return _update(Company, company_id, data)


def delete_company(company_id: int) -> bool:
    return _delete(Company, company_id)


# =========================
# Projects
# =========================
def list_projects() -> list[Project]:
    return _list(Project, Project.name)


def get_project(project_id: int) -> Project:
    return _get(Project, project_id)


def _check_project_dates(start, end) -> None:
    if start and end and end < start:
        raise ValidationError("Project end date must not be before its start date.")


def create_project(data: dict[str, Any]) -> Project:
    _check_project_dates(data.get("start_date"), data.get("end_date"))
    return _create(Project, data)


def update_project(project_id: int, data: dict[str, Any]) -> Project:
    current = _get(Project, project_id)
    _check_project_dates(
        data["start_date"] if "start_date" in data else current.start_date,
        data["end_date"] if "end_date" in data else current.end_date,
    )
    return _update(Project, project_id, data)


def delete_project(project_id: int) -> bool:
    return _delete(Project, project_id)


# =========================
# Phases / subphases
# =========================
def list_phases() -> list[Phase]:
    return _list(Phase, Phase.order_index, Phase.name)


def get_phase(phase_id: int) -> Phase:
    return _get(Phase, phase_id)


def create_phase(data: dict[str, Any]) -> Phase:
    return _create(Phase, data)


def update_phase(phase_id: int, data: dict[str, Any]) -> Phase:
    return _update(Phase, phase_id, data)


def delete_phase(phase_id: int) -> bool:
    return _delete(Phase, phase_id)


def list_subphases(phase_id: int) -> list[Subphase]:
    with db_session() as s:
        if not s.get(Phase, phase_id):
            raise NotFoundError(f"Phase {phase_id} not found.")
        q = select(Subphase).where(Subphase.phase_id == phase_id).order_by(Subphase.order_index, Subphase.id)
        return list(s.scalars(q))


def create_subphase(phase_id: int, data: dict[str, Any]) -> Subphase:
    _get(Phase, phase_id)
    return _create(Subphase, {**data, "phase_id": phase_id})


def update_subphase(subphase_id: int, data: dict[str, Any]) -> Subphase:
    data = {k: v for k, v in data.items() if k != "phase_id"}
    return _update(Subphase, subphase_id, data)


def delete_subphase(subphase_id: int) -> bool:
    return _delete(Subphase, subphase_id)


# =========================
# Phases of a project
# =========================
def _check_progress(data: dict[str, Any]) -> None:
    progress = data.get("progress_percentage")
    if progress is not None and not 0 <= progress <= 100:
        raise ValidationError("Progress must be between 0 and 100.")


def project_phases_flat(project_id: int) -> list[dict]:
    """Phases of a project with the phase name, ordered like the phase catalogue."""
    with db_session() as s:
        if not s.get(Project, project_id):
            raise NotFoundError(f"Project {project_id} not found.")
        rows = s.execute(
            select(ProjectPhase, Phase.name, Phase.color, Phase.order_index)
            .join(Phase, Phase.id == ProjectPhase.phase_id)
            .where(ProjectPhase.project_id == project_id)
            .order_by(Phase.order_index, Phase.name)
        ).all()
        return [
            {
                "id": pp.id,
                "projectId": pp.project_id,
                "phaseId": pp.phase_id,
                "phaseName": name,
                "phaseColor": color,
                "orderIndex": order_index,
                "startDate": pp.start_date.isoformat() if pp.start_date else None,
                "endDate": pp.end_date.isoformat() if pp.end_date else None,
                "status": pp.status.value,
                "progressPercentage": pp.progress_percentage,
                "notes": pp.notes,
            }
            for pp, name, color, order_index in rows
        ]


def add_project_phase(project_id: int, data: dict[str, Any]) -> ProjectPhase:
    _check_progress(data)
    with db_session() as s:
        if not s.get(Project, project_id):
            raise NotFoundError(f"Project {project_id} not found.")
        phase_id = data.get("phase_id")
        if not phase_id or not s.get(Phase, phase_id):
            raise NotFoundError(f"Phase {phase_id} not found.")

        exists = s.execute(
            select(ProjectPhase.id).where(
                and_(ProjectPhase.project_id == project_id, ProjectPhase.phase_id == phase_id)
            )
        ).first()
        if exists:
            raise ValidationError("The phase is already part of this project.")

        pp = ProjectPhase(**_columns(ProjectPhase, {**data, "project_id": project_id}))
        s.add(pp)
        s.flush()
        logger.info("Phase %s added to project %s", phase_id, project_id)
        return pp


def _project_phase(s, project_id: int, project_phase_id: int) -> ProjectPhase:
    pp = s.get(ProjectPhase, project_phase_id)
    if not pp or pp.project_id != project_id:
        raise NotFoundError(f"Phase {project_phase_id} not found in project {project_id}.")
    return pp


def update_project_phase(project_id: int, project_phase_id: int, data: dict[str, Any]) -> ProjectPhase:
    _check_progress(data)
    with db_session() as s:
        pp = _project_phase(s, project_id, project_phase_id)
        for key, value in _columns(ProjectPhase, data).items():
            if key in ("project_id", "phase_id"):
                continue
            setattr(pp, key, value)
        return pp


def remove_project_phase(project_id: int, project_phase_id: int) -> bool:
    with db_session() as s:
        pp = s.get(ProjectPhase, project_phase_id)
        if not pp or pp.project_id != project_id:
            return False
        s.delete(pp)
        return True


# =========================
# Team members
# =========================
def list_users() -> list[User]:
    return _list(User, User.name)


def get_user(user_id: int) -> User:
    return _get(User, user_id)


def create_user(data: dict[str, Any]) -> User:
    return _create(User, data)


def update_user(user_id: int, data: dict[str, Any]) -> User:
    return _update(User, user_id, data)


def delete_user(user_id: int) -> bool:
    return _delete(User, user_id)
