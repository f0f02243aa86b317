from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    func,
    Boolean,
    text
)
from sqlalchemy.orm import relationship
from app.database import Base, table_args, fk


class Tag(Base):
    __tablename__ = "forum_tags"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(80), nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Topic(Base):
    __tablename__ = "forum_topics"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    slug = Column(String(120), nullable=False, unique=True, index=True)

    user_id = Column(
        Integer,
        ForeignKey(fk("users.id"), ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    tag_id = Column(
        Integer,
        ForeignKey(fk("forum_tags.id"), ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # published flag; unpublished topics hide their posts from listings
    status = Column(Boolean, nullable=False, default=True, server_default=text("true"))

    # denormalized counters for faster topic list
    post_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_post_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    owner = relationship("User", lazy="joined")
    tag = relationship("Tag", lazy="joined")
    posts = relationship(
        "Post",
        back_populates="topic",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Post(Base):
    __tablename__ = "forum_posts"
    __table_args__ = table_args()

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    slug = Column(String(120), nullable=False, unique=True, index=True)
    content = Column(Text, nullable=False)
    main_image = Column(String(2048), nullable=True)
    reading_time = Column(Integer, nullable=False, default=0, server_default="0")

    user_id = Column(
        Integer,
        ForeignKey(fk("users.id"), ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    topic_id = Column(
        Integer,
        ForeignKey(fk("forum_topics.id"), ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id = Column(
        Integer,
        ForeignKey(fk("forum_posts.id"), ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    status = Column(Boolean, nullable=False, default=True, server_default=text("true"), index=True)

    view_count = Column(Integer, nullable=False, default=0, server_default="0")
    post_count = Column(Integer, nullable=False, default=0, server_default="0")
    last_post_at = Column(DateTime(timezone=True), nullable=True)

    # written by the vote collaborator, never computed here
    score = Column(Integer, nullable=True)
    upvotes = Column(Integer, nullable=True)
    downvotes = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # relationships
    author = relationship("User", lazy="joined")
    topic = relationship("Topic", back_populates="posts", lazy="joined")
    parent = relationship("Post", remote_side=[id], lazy="joined", join_depth=1)
