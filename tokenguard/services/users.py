"""User repository: the subject store consumed by the token services"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from tokenguard.models.user import RefreshTokenRecord, User
from tokenguard.utils.auth import generate_user_id, hash_token
from tokenguard.utils.jwt_utils import TokenClaims
from tokenguard.utils.passwords import PasswordHasher


class UserRepository:
    """Data access for users and the refresh tokens on file for them.

    Methods that change state commit immediately; the revocation flows call
    them one at a time and tolerate a crash between calls.
    """

    def __init__(self, db: Session, hasher: Optional[PasswordHasher] = None):
        self.db = db
        self.hasher = hasher or PasswordHasher()

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.user_id == user_id).first()

    def find_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.strip().lower()).first()

    def find_active_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(
            User.email == email.strip().lower(),
            User.is_active == True,
        ).first()

    def create_user(self, email: str, password: str) -> User:
        user = User(
            user_id=generate_user_id(),
            email=email.strip().lower(),
            password_hash=self.hasher.hash(password),
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def compare_password(self, user: User, password: str) -> bool:
        return self.hasher.verify(password, user.password_hash)

    def touch_last_login(self, user: User) -> None:
        user.last_login = datetime.utcnow()
        self.db.commit()

    # ------------------------------------------------------------------
    # Refresh token references
    # ------------------------------------------------------------------

    def add_refresh_token(self, user_id: str, token: str, claims: TokenClaims) -> RefreshTokenRecord:
        record = RefreshTokenRecord(
            user_id=user_id,
            token_hash=hash_token(token),
            token_id=claims.token_id or "",
            expires_at=claims.expires_at.replace(tzinfo=None),
        )
        self.db.add(record)
        self.db.commit()
        return record

    def refresh_tokens_for(self, user_id: str) -> List[RefreshTokenRecord]:
        return self.db.query(RefreshTokenRecord).filter(
            RefreshTokenRecord.user_id == user_id
        ).order_by(RefreshTokenRecord.created_at).all()

    def has_refresh_token(self, user_id: str, token: str) -> bool:
        return self.db.query(RefreshTokenRecord.id).filter(
            RefreshTokenRecord.user_id == user_id,
            RefreshTokenRecord.token_hash == hash_token(token),
        ).first() is not None

    def remove_refresh_token(self, user_id: str, token: str) -> int:
        return self.remove_refresh_token_hash(user_id, hash_token(token))

    def remove_refresh_token_hash(self, user_id: str, token_hash: str) -> int:
        removed = self.db.query(RefreshTokenRecord).filter(
            RefreshTokenRecord.user_id == user_id,
            RefreshTokenRecord.token_hash == token_hash,
        ).delete(synchronize_session=False)
        self.db.commit()
        return removed

    def remove_all_refresh_tokens(self, user_id: str) -> int:
        removed = self.db.query(RefreshTokenRecord).filter(
            RefreshTokenRecord.user_id == user_id
        ).delete(synchronize_session=False)
        self.db.commit()
        return removed
