"""Account repository - Database operations for accounts"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Account, Role, VerificationStatus


class AccountRepository:
    """Repository for account database operations"""

    @staticmethod
    def get_by_id(db: Session, account_id: int) -> Optional[Account]:
        return db.query(Account).filter(Account.id == account_id).first()

    @staticmethod
    def get_verified_doctor(db: Session, doctor_id: int) -> Optional[Account]:
        """Get a doctor only if the account is a verified DOCTOR"""
        return (
            db.query(Account)
            .filter(
                Account.id == doctor_id,
                Account.role == Role.DOCTOR,
                Account.verification_status == VerificationStatus.VERIFIED,
            )
            .first()
        )

    @staticmethod
    def get_doctor(db: Session, doctor_id: int) -> Optional[Account]:
        return (
            db.query(Account)
            .filter(Account.id == doctor_id, Account.role == Role.DOCTOR)
            .first()
        )

    @staticmethod
    def list_doctors(
        db: Session, status: Optional[VerificationStatus] = None, order_by_name: bool = False
    ) -> list[Account]:
        query = db.query(Account).filter(Account.role == Role.DOCTOR)
        if status is not None:
            query = query.filter(Account.verification_status == status)
        if order_by_name:
            return query.order_by(Account.name, Account.id).all()
        return query.order_by(Account.created_at.desc()).all()

    @staticmethod
    def lock(db: Session, account_id: int) -> Optional[Account]:
        """Load an account with a row lock held until the transaction ends"""
        return (
            db.query(Account)
            .filter(Account.id == account_id)
            .populate_existing()
            .with_for_update()
            .first()
        )
