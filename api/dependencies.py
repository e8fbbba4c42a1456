"""
FastAPI dependencies
"""

from typing import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from services.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Database session for the request"""
    async with get_container(request).session_factory() as session:
        yield session
