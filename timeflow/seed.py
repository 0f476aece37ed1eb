from __future__ import annotations

from sqlalchemy import select

from .db import db_session
from .models import Company, CompanyType, Phase, Subphase


def seed_base() -> None:
    """
    Minimal base data (idempotent):
    - the internal company
    - the standard phase catalogue
    - subphases of each phase
    """
    with db_session() as s:
        # Internal company
        if s.execute(select(Company).where(Company.type == CompanyType.INTERNAL)).first() is None:
            s.add(Company(name="Internal", type=CompanyType.INTERNAL, description="Own organisation"))

        # Phases
        phases = [
            ("Planning", "#3B82F6", 1, 5),
            ("Development", "#8B5CF6", 2, 20),
            ("Testing", "#F59E0B", 3, 5),
            ("Delivery", "#10B981", 4, 2),
        ]
        for name, color, order_index, days in phases:
            if s.execute(select(Phase).where(Phase.name == name)).scalar_one_or_none() is None:
                s.add(Phase(name=name, color=color, order_index=order_index, estimated_duration_days=days))

        s.flush()

        # Subphases (simple example)
        planning = s.execute(select(Phase).where(Phase.name == "Planning")).scalar_one()
        testing = s.execute(select(Phase).where(Phase.name == "Testing")).scalar_one()

        def add_subphase(phase_id: int, name: str, order_index: int) -> None:
            if s.execute(
                select(Subphase).where(Subphase.phase_id == phase_id, Subphase.name == name)
            ).scalar_one_or_none() is None:
                s.add(Subphase(phase_id=phase_id, name=name, order_index=order_index))

        add_subphase(planning.id, "Requirements", 1)
        add_subphase(planning.id, "Estimate", 2)
        add_subphase(testing.id, "Acceptance", 1)
