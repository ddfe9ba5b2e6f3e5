"""Appointment repository - Database operations for appointments"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Appointment, TeamMember, WorkspaceMember


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def list_appointments(
        db: Session,
        workspace_id: str,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        team_member_id: Optional[str] = None,
    ) -> list[Appointment]:
        """Non-cancelled appointments in a date range, ordered by date and start time"""
        query = (
            db.query(Appointment)
            .options(
                joinedload(Appointment.service),
                joinedload(Appointment.service_variant),
                joinedload(Appointment.team_member),
            )
            .filter(Appointment.workspace_id == workspace_id, Appointment.status != "cancelled")
        )

        if start_date:
            query = query.filter(Appointment.date >= start_date)
        if end_date:
            query = query.filter(Appointment.date <= end_date)
        if team_member_id and team_member_id != "all":
            query = query.filter(Appointment.team_member_id == team_member_id)

        return query.order_by(Appointment.date, Appointment.start_time).all()

    @staticmethod
    def get_appointment(db: Session, appointment_id: str, workspace_id: Optional[str] = None) -> Optional[Appointment]:
        query = db.query(Appointment).filter(Appointment.id == appointment_id)
        if workspace_id:
            query = query.filter(Appointment.workspace_id == workspace_id)
        return query.first()

    @staticmethod
    def list_pending(db: Session, workspace_id: str) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.workspace_id == workspace_id, Appointment.status == "pending")
            .order_by(Appointment.updated_at.desc(), Appointment.created_at.desc())
            .all()
        )

    @staticmethod
    def save(db: Session, appointment: Appointment) -> Appointment:
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def get_active_member_ids(db: Session, workspace_id: str) -> list[str]:
        rows = (
            db.query(WorkspaceMember.team_member_id)
            .filter(WorkspaceMember.workspace_id == workspace_id, WorkspaceMember.active.is_(True))
            .all()
        )
        return [row[0] for row in rows]

    @staticmethod
    def get_team_member(db: Session, team_member_id: str) -> Optional[TeamMember]:
        return db.query(TeamMember).filter(TeamMember.id == team_member_id).first()
