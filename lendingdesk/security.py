from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt


class PasswordHasher:
    """One-way password hashing with bcrypt."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # malformed stored hash
            return False


class TokenIssuer:
    """Signed bearer tokens whose subject is the account email."""

    def __init__(self, secret: str, algorithm: str = "HS256", expiration_minutes: int = 1440) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.expiration = timedelta(minutes=expiration_minutes)

    def issue(self, email: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {"sub": email, "iat": now, "exp": now + self.expiration}
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def subject(self, token: str) -> Optional[str]:
        """Return the email inside a valid token, or None if it is invalid or expired."""
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.PyJWTError:
            return None
        return payload.get("sub")
