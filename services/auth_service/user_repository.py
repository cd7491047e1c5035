"""
User repository - email/password accounts stored in SQLite with bcrypt hashes.
"""

import os
import sqlite3
import uuid
from datetime import datetime
from typing import Optional
import bcrypt

from config.app_config import get_config
from services.auth_service.models import User
from utils.logging_config import get_logger


class AuthError(Exception):
    """Authentication failure carrying a message fit for display"""
    pass


class UserRepository:
    """
    Repository for user accounts.
    Handles database interactions for registration and credential checks.
    """

    def __init__(self, db_path: str = None):
        """
        Initialize user repository

        Args:
            db_path: Path to user database (defaults to config setting)
        """
        self.logger = get_logger(__name__)
        config = get_config()
        self.db_path = db_path or config.auth.user_db_path
        self.password_min_length = config.auth.password_min_length

        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._init_database()

    def _init_database(self):
        """Initialize user database tables"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                user_id TEXT PRIMARY KEY,
                email TEXT UNIQUE NOT NULL,
                first_name TEXT NOT NULL DEFAULT '',
                last_name TEXT NOT NULL DEFAULT '',
                password_hash TEXT NOT NULL,
                created_at TEXT NOT NULL,
                last_login TEXT
            )
        """)

        conn.commit()
        conn.close()

        self.logger.info("User database initialized")

    def _hash_password(self, password: str) -> str:
        """Hash password using bcrypt"""
        salt = bcrypt.gensalt()
        return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')

    def _verify_password(self, password: str, hashed: str) -> bool:
        """Verify password against hash"""
        return bcrypt.checkpw(password.encode('utf-8'), hashed.encode('utf-8'))

    def create_user(self, email: str, password: str, first_name: str = "",
                    last_name: str = "") -> User:
        """
        Create a new user account

        Args:
            email: User email address, unique
            password: Plain text password (will be hashed)
            first_name: Optional first name
            last_name: Optional last name

        Returns:
            The created user

        Raises:
            AuthError: If the input is invalid or the email is taken
        """
        email = (email or "").strip().lower()
        if not email or not password:
            raise AuthError("Email and password are required")
        if "@" not in email:
            raise AuthError("Please enter a valid email address")
        if len(password) < self.password_min_length:
            raise AuthError(f"Password must be at least {self.password_min_length} characters")

        user = User(
            user_id=str(uuid.uuid4()),
            email=email,
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
        )

        conn = sqlite3.connect(self.db_path)
        try:
            conn.execute("""
                INSERT INTO users (user_id, email, first_name, last_name, password_hash, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (user.user_id, user.email, user.first_name, user.last_name,
                  self._hash_password(password), user.created_at.isoformat()))
            conn.commit()
        except sqlite3.IntegrityError:
            self.logger.warning(f"Email already registered: {email}")
            raise AuthError("An account with this email already exists")
        finally:
            conn.close()

        self.logger.info(f"User created successfully: {email}")
        return user

    def authenticate(self, email: str, password: str) -> User:
        """
        Check credentials

        Args:
            email: Account email
            password: Plain text password

        Returns:
            The authenticated user

        Raises:
            AuthError: If the credentials do not match an account
        """
        email = (email or "").strip().lower()
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute("""
                SELECT user_id, email, first_name, last_name, password_hash, created_at
                FROM users WHERE email = ?
            """, (email,)).fetchone()

            if not row or not self._verify_password(password or "", row[4]):
                self.logger.warning(f"Failed sign-in for: {email}")
                raise AuthError("Invalid email or password")

            now = datetime.now()
            conn.execute("UPDATE users SET last_login = ? WHERE user_id = ?",
                         (now.isoformat(), row[0]))
            conn.commit()
        finally:
            conn.close()

        self.logger.info(f"User authenticated successfully: {email}")
        return User(
            user_id=row[0],
            email=row[1],
            first_name=row[2],
            last_name=row[3],
            created_at=datetime.fromisoformat(row[5]),
            last_login=now,
        )

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        conn = sqlite3.connect(self.db_path)
        try:
            row = conn.execute("""
                SELECT user_id, email, first_name, last_name, created_at, last_login
                FROM users WHERE user_id = ?
            """, (user_id,)).fetchone()
        finally:
            conn.close()

        if not row:
            return None
        return User(
            user_id=row[0],
            email=row[1],
            first_name=row[2],
            last_name=row[3],
            created_at=datetime.fromisoformat(row[4]),
            last_login=datetime.fromisoformat(row[5]) if row[5] else None,
        )


# Global repository instance
_user_repository: Optional[UserRepository] = None


def get_user_repository() -> UserRepository:
    """Get the global user repository instance"""
    global _user_repository
    if _user_repository is None:
        _user_repository = UserRepository()
    return _user_repository
