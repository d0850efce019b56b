"""Zapier job repository"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models_onboarding import ZapierJob

IN_FLIGHT_STATUSES = ("PENDING", "SUCCESS")


class ZapierJobRepository:
    @staticmethod
    def get_by_request_id(db: Session, request_id: str) -> Optional[ZapierJob]:
        return db.query(ZapierJob).filter(ZapierJob.request_id == request_id).first()

    @staticmethod
    def in_flight_for_email(db: Session, email: str) -> Optional[ZapierJob]:
        return (
            db.query(ZapierJob)
            .filter(ZapierJob.email == email, ZapierJob.status.in_(IN_FLIGHT_STATUSES))
            .first()
        )

    @staticmethod
    def create(db: Session, job: ZapierJob) -> ZapierJob:
        db.add(job)
        db.commit()
        db.refresh(job)
        return job

    @staticmethod
    def save(db: Session, job: ZapierJob) -> ZapierJob:
        db.commit()
        db.refresh(job)
        return job

    @staticmethod
    def list_jobs(db: Session, status: Optional[str] = None, email: Optional[str] = None, limit: int = 100) -> list[ZapierJob]:
        query = db.query(ZapierJob)
        if status:
            query = query.filter(ZapierJob.status == status.upper())
        if email:
            query = query.filter(ZapierJob.email == email)
        return query.order_by(ZapierJob.created_at.desc(), ZapierJob.id.desc()).limit(limit).all()
