from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from . import config, errors, models


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=config.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode(), salt).decode()


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(plain_password.encode(), hashed_password.encode())
    except ValueError:
        # malformed stored hash
        return False


def create_access_token(user: models.User, expires_delta: timedelta | None = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "role": user.role.value,
        "ver": user.token_version,
        "iat": now,
        "exp": now + (expires_delta or timedelta(minutes=config.TOKEN_TTL_MINUTES)),
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        raise errors.Unauthenticated("Token has expired")
    except jwt.PyJWTError:
        raise errors.Unauthenticated("Invalid token")
    try:
        payload["sub"] = int(payload["sub"])
    except (TypeError, ValueError):
        raise errors.Unauthenticated("Invalid token")
    return payload
