import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "paratha-api")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./paratha.db")
DB_TIMEOUT_SECONDS = float(os.getenv("DB_TIMEOUT_SECONDS", "5"))

JWT_SECRET = os.getenv("JWT_SECRET", "paratha-secret-change-in-production")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
TOKEN_TTL_MINUTES = int(os.getenv("TOKEN_TTL_MINUTES", str(24 * 60)))

BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "12"))

# Public admin signup is convenient for local setups; disable it everywhere else.
ALLOW_ADMIN_SIGNUP = os.getenv("ALLOW_ADMIN_SIGNUP", "true").lower() in ("1", "true", "yes")
