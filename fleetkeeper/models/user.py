import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from fleetkeeper.core.database import Base


def _new_user_id() -> str:
    return str(uuid.uuid4())


class AuthUser(Base):
    __tablename__ = "auth_users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    email = Column(String(255), unique=True, index=True, nullable=False)  # stored lower-cased
    hashed_password = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
