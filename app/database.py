from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from app.config import DATABASE_URL, DB_SCHEMA, SQL_ECHO
from typing import AsyncGenerator

engine = create_async_engine(
    DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://"),
    echo=SQL_ECHO,
    future=True
)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
Base = declarative_base()


def table_args(*constraints) -> tuple:
    """__table_args__ with the configured schema appended (if any)."""
    if DB_SCHEMA:
        return (*constraints, {"schema": DB_SCHEMA})
    return constraints


def fk(target: str) -> str:
    """Schema-qualified "table.column" for ForeignKey()."""
    return f"{DB_SCHEMA}.{target}" if DB_SCHEMA else target


# Dependency for FastAPI routes
async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
