"""Assignment repository - staff <-> client mapping"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import AssignClient


class AssignmentRepository:
    """Repository for staff/client assignments"""

    @staticmethod
    def get_pair(db: Session, staff_id: int, client_id: int) -> Optional[AssignClient]:
        return (
            db.query(AssignClient)
            .filter(AssignClient.staff_id == staff_id, AssignClient.client_id == client_id)
            .first()
        )

    @staticmethod
    def create(db: Session, staff_id: int, client_id: int, assigned_by: int) -> AssignClient:
        assignment = AssignClient(staff_id=staff_id, client_id=client_id, assigned_by=assigned_by)
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        return assignment

    @staticmethod
    def delete(db: Session, assignment: AssignClient) -> None:
        db.delete(assignment)
        db.commit()

    @staticmethod
    def list_all(db: Session) -> list[AssignClient]:
        return db.query(AssignClient).order_by(AssignClient.created_at.desc(), AssignClient.id.desc()).all()

    @staticmethod
    def for_staff(db: Session, staff_id: int, limit: Optional[int] = None) -> list[AssignClient]:
        query = (
            db.query(AssignClient)
            .filter(AssignClient.staff_id == staff_id)
            .order_by(AssignClient.created_at.desc(), AssignClient.id.desc())
        )
        if limit:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def for_client(db: Session, client_id: int) -> list[AssignClient]:
        return (
            db.query(AssignClient)
            .filter(AssignClient.client_id == client_id)
            .order_by(AssignClient.id)
            .all()
        )

    @staticmethod
    def count_for_staff(db: Session, staff_id: int) -> int:
        return db.query(AssignClient).filter(AssignClient.staff_id == staff_id).count()
