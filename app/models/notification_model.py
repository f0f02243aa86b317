from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, func, text

from app.database import Base, table_args, fk


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String(40), nullable=False)  # flow.replied | post.reply

    recipient_id = Column(
        Integer,
        ForeignKey(fk("users.id"), ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    actor_id = Column(Integer, nullable=True)
    actor_name = Column(String(80), nullable=True)

    excerpt = Column(String(200), nullable=True)
    target_id = Column(Integer, nullable=True)
    target_slug = Column(String(120), nullable=True)

    is_read = Column(Boolean, nullable=False, default=False, server_default=text("false"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
