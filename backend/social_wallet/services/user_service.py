"""User service - account registration and first-party authentication"""

from datetime import datetime
from typing import Callable, Optional, Tuple
import logging

from sqlalchemy.orm import Session

from social_wallet.config import settings
from social_wallet.core.database import run_in_transaction
from social_wallet.core.exceptions import (
    AccountDeactivatedError,
    AuthenticationError,
    DuplicateEmailError,
    DuplicateUsernameError,
    InvalidCredentialsError,
)
from social_wallet.core.security import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    get_password_hash,
    verify_password,
)
from social_wallet.models.user import User
from social_wallet.schemas.user import UserCreate, UserRole

logger = logging.getLogger(__name__)


class UserService:
    """Service for user accounts"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = datetime.utcnow):
        self.db = db
        self.clock = clock

    def create_user(self, user_data: UserCreate) -> User:
        """
        Create a new account

        Args:
            user_data: Registration data

        Returns:
            Created user
        """
        email = user_data.email.lower()
        if self.get_user_by_email(email):
            raise DuplicateEmailError()
        if user_data.username and self.db.query(User).filter(User.username == user_data.username).first():
            raise DuplicateUsernameError(user_data.username)

        def _insert(tx: Session) -> User:
            user = User(
                email=email,
                username=user_data.username,
                password_hash=get_password_hash(user_data.password),
                role=user_data.role.value,
            )
            tx.add(user)
            tx.flush()
            return user

        user = run_in_transaction(self.db, _insert)
        logger.info(f"Created user id={user.id} role={user.role}")
        return user

    def register(self, user_data: UserCreate) -> User:
        """Public sign-up; the role is always forced to ``user``."""
        return self.create_user(user_data.model_copy(update={"role": UserRole.USER}))

    def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate by email and password

        Raises:
            InvalidCredentialsError: Unknown email or wrong password
            AccountDeactivatedError: Account disabled
        """
        user = self.get_user_by_email(email.lower())
        if not user or not verify_password(password, user.password_hash):
            logger.warning("Failed login attempt")
            raise InvalidCredentialsError()
        if not user.is_active:
            raise AccountDeactivatedError()

        user.last_login = self.clock()
        run_in_transaction(self.db, lambda tx: tx.flush())

        logger.info(f"User authenticated id={user.id}")
        return user

    @staticmethod
    def issue_token_pair(user: User) -> Tuple[str, str]:
        claims = {"sub": str(user.id), "email": user.email, "role": user.role}
        return create_access_token(claims), create_refresh_token(claims)

    def refresh_session(self, refresh_token: str) -> Tuple[User, str, str]:
        payload = decode_refresh_token(refresh_token)
        if not payload or not payload.get("sub"):
            raise AuthenticationError("Invalid refresh token")

        user = self.get_user_by_id(int(payload["sub"]))
        if not user or not user.is_active:
            raise AuthenticationError("User not found or inactive")

        access_token, new_refresh = self.issue_token_pair(user)
        return user, access_token, new_refresh

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()

    def ensure_admin(self) -> Optional[User]:
        """Create the bootstrap admin account from settings if it does not exist."""
        if self.get_user_by_email(settings.ADMIN_EMAIL.lower()):
            return None
        admin = self.create_user(
            UserCreate.model_construct(
                email=settings.ADMIN_EMAIL,
                password=settings.ADMIN_PASSWORD,
                username="admin",
                role=UserRole.ADMIN,
            )
        )
        logger.info(f"Created admin user id={admin.id}")
        return admin
