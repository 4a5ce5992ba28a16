# ---
# File: utils/hash.py
# Purpose: Password hashing and verification using bcrypt through passlib
# ---

from passlib.context import CryptContext

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 100

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


# ---
# A stored value that is not a bcrypt hash (legacy rows, manual edits)
# never verifies instead of raising.
# ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False
