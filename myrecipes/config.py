import logging
import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Startup configuration handed to ``create_app``."""

    database_url: str = "sqlite:///./recipes.db"
    jwt_secret: str = Field(..., min_length=1)
    # None keeps tokens valid until they are revoked
    jwt_expires_in: Optional[int] = Field(default=None, gt=0)
    bcrypt_rounds: int = Field(default=8, ge=4, le=31)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        values = {}
        for key, name in (
            ("database_url", "DATABASE_URL"),
            ("jwt_secret", "JWT_SECRET"),
            ("jwt_expires_in", "JWT_EXPIRES_IN"),
            ("bcrypt_rounds", "BCRYPT_ROUNDS"),
            ("log_level", "LOG_LEVEL"),
        ):
            if env.get(name):
                values[key] = env[name]
        return cls(**values)


def configure_logging(level: str = "INFO"):
    log = logging.getLogger("myrecipes")
    if not log.handlers:
        h = logging.StreamHandler()
        h.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        log.addHandler(h)
    log.setLevel(level.upper())
    return log
