import asyncio
import hashlib
import hmac
import logging
import secrets
from typing import Any, Optional

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from skillbot.db.client import StoreClient
from skillbot.db.models import COLLECTIONS, Account, AuthSession
from skillbot.domain import Identity
from skillbot.errors import AuthError, FetchError, WriteError

MIN_PASSWORD_LENGTH = 6
_PBKDF2_ITERATIONS = 120_000


def _hash_password(password: str, salt_hex: str) -> str:
    return hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt_hex), _PBKDF2_ITERATIONS
    ).hex()


def _to_dict(row) -> dict:
    return {attr.key: getattr(row, attr.key) for attr in inspect(row).mapper.column_attrs}


def _model(collection: str):
    try:
        return COLLECTIONS[collection]
    except KeyError:
        raise ValueError(f"Unknown collection: {collection}") from None


class SqlStoreClient(StoreClient):
    """
    Store client backed by SQLAlchemy.

    One client is bound to one device key (the Telegram user id), so the
    signed-in session is looked up per device and survives restarts.
    """

    def __init__(self, session_factory: sessionmaker, device_key: str):
        self._session_factory = session_factory
        self.device_key = device_key

    async def get_session(self) -> Optional[Identity]:
        try:
            with self._session_factory() as session:
                auth = session.get(AuthSession, self.device_key)
                if not auth:
                    return None
                account = session.get(Account, auth.account_id)
                if not account:
                    return None
                return Identity(id=account.id, email=account.email)
        except SQLAlchemyError as e:
            logging.error(f"Session lookup failed for {self.device_key}: {e}")
            return None

    async def sign_in(self, email: str, password: str) -> Identity:
        email = email.strip().lower()
        try:
            with self._session_factory() as session:
                account = session.query(Account).filter(Account.email == email).first()
        except SQLAlchemyError as e:
            raise AuthError(str(e)) from e
        if not account:
            raise AuthError("Invalid login credentials")

        # PBKDF2 is slow, keep it off the event loop
        derived = await asyncio.to_thread(_hash_password, password, account.pw_salt)
        if not hmac.compare_digest(account.pw_hash, derived):
            raise AuthError("Invalid login credentials")

        try:
            with self._session_factory() as session:
                self._bind_session(session, account.id)
                session.commit()
        except SQLAlchemyError as e:
            raise AuthError(str(e)) from e
        return Identity(id=account.id, email=account.email)

    async def sign_up(self, email: str, password: str) -> Identity:
        email = email.strip().lower()
        if len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(
                f"Password should be at least {MIN_PASSWORD_LENGTH} characters"
            )
        salt = secrets.token_hex(16)
        pw_hash = await asyncio.to_thread(_hash_password, password, salt)
        try:
            with self._session_factory() as session:
                exists = session.query(Account).filter(Account.email == email).first()
                if exists:
                    raise AuthError("User already registered")
                account = Account(email=email, pw_hash=pw_hash, pw_salt=salt)
                session.add(account)
                session.flush()
                self._bind_session(session, account.id)
                session.commit()
                return Identity(id=account.id, email=account.email)
        except SQLAlchemyError as e:
            raise AuthError(str(e)) from e

    async def sign_out(self) -> None:
        try:
            with self._session_factory() as session:
                auth = session.get(AuthSession, self.device_key)
                if auth:
                    session.delete(auth)
                    session.commit()
        except SQLAlchemyError as e:
            raise AuthError(str(e)) from e

    def _bind_session(self, session, account_id: str) -> None:
        auth = session.get(AuthSession, self.device_key)
        if auth:
            auth.account_id = account_id
        else:
            session.add(AuthSession(device_key=self.device_key, account_id=account_id))

    async def fetch_one(
        self, collection: str, filters: dict[str, Any]
    ) -> Optional[dict]:
        model = _model(collection)
        try:
            with self._session_factory() as session:
                row = session.query(model).filter_by(**filters).first()
                return _to_dict(row) if row else None
        except SQLAlchemyError as e:
            raise FetchError(f"{collection}: {e}") from e

    async def fetch_many(
        self,
        collection: str,
        filters: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        ascending: bool = True,
    ) -> list[dict]:
        model = _model(collection)
        try:
            with self._session_factory() as session:
                query = session.query(model).filter_by(**(filters or {}))
                if order_by:
                    column = getattr(model, order_by)
                    query = query.order_by(column.asc() if ascending else column.desc())
                # Stable order for rows with equal sort keys
                query = query.order_by(model.id.asc())
                return [_to_dict(row) for row in query.all()]
        except SQLAlchemyError as e:
            raise FetchError(f"{collection}: {e}") from e

    async def insert(self, collection: str, record: dict[str, Any]) -> dict:
        model = _model(collection)
        try:
            with self._session_factory() as session:
                row = model(**record)
                session.add(row)
                session.commit()
                session.refresh(row)
                return _to_dict(row)
        except SQLAlchemyError as e:
            raise WriteError(f"{collection}: {e}") from e

    async def update(
        self, collection: str, record_id: str, values: dict[str, Any]
    ) -> dict:
        model = _model(collection)
        try:
            with self._session_factory() as session:
                row = session.get(model, record_id)
                if not row:
                    raise WriteError(f"{collection}: no row with id {record_id}")
                for key, value in values.items():
                    setattr(row, key, value)
                session.commit()
                session.refresh(row)
                return _to_dict(row)
        except SQLAlchemyError as e:
            raise WriteError(f"{collection}: {e}") from e
