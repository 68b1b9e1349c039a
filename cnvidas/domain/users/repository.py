"""User repository - Database operations for accounts and QR tokens"""

from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ...models import Doctor, QrAuthLog, QrToken, User


class UserRepository:
    """Repository for user database operations"""

    @staticmethod
    def get_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_login(db: Session, email: Optional[str], username: Optional[str]) -> Optional[User]:
        conditions = []
        if email:
            conditions.append(User.email == email.strip().lower())
        if username:
            conditions.append(User.username == username.strip().lower())
        return db.query(User).filter(or_(*conditions)).first()

    @staticmethod
    def find_conflict(db: Session, email: str, username: str, cpf: Optional[str]) -> Optional[str]:
        """Name of the first unique field already taken, if any"""
        if db.query(User.id).filter(User.email == email).first():
            return "email"
        if db.query(User.id).filter(User.username == username).first():
            return "username"
        if cpf and db.query(User.id).filter(User.cpf == cpf).first():
            return "cpf"
        return None

    @staticmethod
    def license_taken(db: Session, license_number: str) -> bool:
        return db.query(Doctor.id).filter(Doctor.license_number == license_number).first() is not None

    @staticmethod
    def cpf_taken_by_other(db: Session, cpf: str, user_id: int) -> bool:
        return db.query(User.id).filter(User.cpf == cpf, User.id != user_id).first() is not None

    @staticmethod
    def get_qr_token(db: Session, token: str) -> Optional[QrToken]:
        return db.query(QrToken).filter(QrToken.token == token).first()

    @staticmethod
    def add_qr_log(db: Session, **log_data) -> QrAuthLog:
        log = QrAuthLog(**log_data)
        db.add(log)
        return log
