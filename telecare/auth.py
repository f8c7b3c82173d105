import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import IDENTITY_HEADER
from .database import get_db
from .models import Account, Role

logger = logging.getLogger(__name__)


def get_or_create_account(
    db: Session, external_id: str, email: Optional[str] = None, name: Optional[str] = None
) -> Account:
    """
    Resolve the identity-provider subject to an account, creating it on first access.
    New accounts start UNASSIGNED with no credits until onboarding picks a role.
    """
    account = db.query(Account).filter(Account.external_id == external_id).first()
    if account:
        return account

    account = Account(external_id=external_id, email=email, name=name, role=Role.UNASSIGNED, credits=0)
    db.add(account)
    try:
        db.commit()
    except IntegrityError:
        # Another request created it first
        db.rollback()
        return db.query(Account).filter(Account.external_id == external_id).one()

    db.refresh(account)
    logger.info(f"👤 Created account {account.id} for subject {external_id}")
    return account


async def get_current_account(
    request: Request,
    db: Session = Depends(get_db),
    email: Optional[str] = Header(None, alias="X-Account-Email"),
    name: Optional[str] = Header(None, alias="X-Account-Name"),
) -> Account:
    """
    The authenticating gateway verifies the session and forwards the subject
    in IDENTITY_HEADER. Authentication is trusted; authorization happens in
    the domain services.
    """
    external_id = request.headers.get(IDENTITY_HEADER)
    if not external_id:
        logger.warning(f"Authentication failed for {request.url.path}: missing {IDENTITY_HEADER}")
        raise HTTPException(status_code=401, detail="Not authenticated")

    return get_or_create_account(db, external_id.strip(), email=email, name=name)
