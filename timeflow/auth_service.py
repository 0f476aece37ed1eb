from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select

from timeflow.auth_models import Account
from timeflow.auth_security import hash_password, verify_password
from timeflow.db import db_session

logger = logging.getLogger(__name__)


def create_account(username: str, password: str) -> str:
    username = username.strip().lower()
    if not username or not password:
        raise ValueError("Username and password are required.")

    with db_session() as s:
        exists = s.execute(select(Account).where(Account.username == username)).scalar_one_or_none()
        if exists:
            raise ValueError("Username already registered.")

        a = Account(username=username, password_hash=hash_password(password), is_active=True)
        s.add(a)
        s.flush()
        logger.info("Account %s registered", username)
        return a.id


def authenticate(username: str, password: str) -> Account | None:
    username = username.strip().lower()
    with db_session() as s:
        a = s.execute(select(Account).where(Account.username == username)).scalar_one_or_none()
        if not a or not a.is_active:
            return None
        if not verify_password(password, a.password_hash):
            logger.warning("Failed login for %s", username)
            return None
        a.last_login_at = datetime.now()
        return a


def get_account_by_id(account_id: str) -> Account | None:
    with db_session() as s:
        return s.get(Account, account_id)
