from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, func, text

from app.database import Base, table_args


class ContactMessage(Base):
    __tablename__ = "contact_messages"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False)
    subject = Column(String(150), nullable=False)
    message = Column(Text, nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    is_read = Column(Boolean, nullable=False, default=False, server_default=text("false"))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
