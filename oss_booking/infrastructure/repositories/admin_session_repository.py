# oss_booking/infrastructure/repositories/admin_session_repository.py

from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from oss_booking.infrastructure.db.models import AdminSession


class AdminSessionRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_token(self, token: str) -> AdminSession | None:
        stmt = select(AdminSession).where(AdminSession.token == token)
        return self.db.execute(stmt).scalar_one_or_none()

    def count_for_email(self, email: str) -> int:
        stmt = select(func.count(AdminSession.id)).where(AdminSession.email == email)
        return self.db.execute(stmt).scalar_one()

    def create_session(self, email: str, token: str, expires_at: datetime) -> AdminSession:
        session = AdminSession(email=email, token=token, expires_at=expires_at)
        self.db.add(session)
        self.db.flush()
        return session

    def delete_for_email(self, email: str) -> int:
        result = self.db.execute(delete(AdminSession).where(AdminSession.email == email))
        return result.rowcount

    def delete_by_token(self, token: str) -> int:
        result = self.db.execute(delete(AdminSession).where(AdminSession.token == token))
        return result.rowcount
