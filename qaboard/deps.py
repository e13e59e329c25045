from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from qaboard.config import settings
from qaboard.database.session import get_db
from qaboard.providers.ledger.base import LedgerClient

# Services
from qaboard.services.action_service import ActionService
from qaboard.services.funding_service import FundingService
from qaboard.services.user_service import UserService


def get_ledger_client(request: Request) -> LedgerClient:
    """앱 컨테이너의 싱글톤 Ledger Client"""
    return request.app.container.ledger.ledger_client()


def get_funding_service(
    db: Session = Depends(get_db), ledger: LedgerClient = Depends(get_ledger_client)
) -> FundingService:
    return FundingService(db=db, ledger=ledger, settings=settings)


def get_action_service(
    db: Session = Depends(get_db), ledger: LedgerClient = Depends(get_ledger_client)
) -> ActionService:
    return ActionService(db=db, ledger=ledger, settings=settings)


def get_user_service(
    db: Session = Depends(get_db), ledger: LedgerClient = Depends(get_ledger_client)
) -> UserService:
    return UserService(db=db, ledger=ledger, settings=settings)


def get_client_ip(request: Request) -> Optional[str]:
    """프록시(API Gateway/ALB) 뒤에서는 x-forwarded-for의 첫 번째 값"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
