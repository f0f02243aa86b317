from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    ForeignKey,
    func,
    Boolean,
    text,
)
from sqlalchemy.orm import relationship

from app.database import Base, table_args, fk
from app.config import FLOW_MAX_CHARS


class Flow(Base):
    __tablename__ = "flows"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    content = Column(String(FLOW_MAX_CHARS), nullable=False)

    author_id = Column(
        Integer,
        ForeignKey(fk("users.id"), ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # flat self-reference; replies point at their parent, never the other way
    parent_id = Column(
        Integer,
        ForeignKey(fk("flows.id"), ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # denormalized, maintained by app.services.counters
    reply_count = Column(Integer, nullable=False, default=0, server_default="0")
    is_deleted = Column(Boolean, nullable=False, default=False, server_default=text("false"), index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    author = relationship("User", lazy="joined")
    parent = relationship("Flow", remote_side=[id], lazy="joined", join_depth=1)
