from sqlalchemy import Column, Integer, String, DateTime, func

from app.database import Base, table_args

ROLE_GENERAL = "GENERAL"
ROLE_MODERATOR = "MODERATOR"
ROLE_ADMIN = "ADMIN"


class User(Base):
    __tablename__ = "users"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, index=True, nullable=False)
    nickname = Column(String(80), nullable=True)
    avatar = Column(String(1024), nullable=True)
    email = Column(String(320), unique=True, index=True, nullable=True)
    role = Column(String(20), nullable=False, default=ROLE_GENERAL, server_default=ROLE_GENERAL)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    @property
    def display_name(self) -> str:
        return self.nickname or self.username
