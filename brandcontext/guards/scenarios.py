"""Scenario bank completeness guard."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func
from sqlmodel import col, select
from sqlmodel.ext.asyncio.session import AsyncSession

from brandcontext.exceptions import ScenarioBankIncomplete
from brandcontext.models.database import MaritimeScenario

if TYPE_CHECKING:
    from brandcontext.tenancy.switcher import StorageContext

logger = structlog.get_logger(__name__)

DEFAULT_REQUIRED_SCENARIOS = 8


class ScenarioBankGuard:
    """Counts active scenarios per command class on the context's connection."""

    def __init__(self, ctx: StorageContext, required: int = DEFAULT_REQUIRED_SCENARIOS) -> None:
        self._ctx = ctx
        self._required = required

    @property
    def required(self) -> int:
        return self._required

    async def count_active(self, command_class: str) -> int:
        async with AsyncSession(self._ctx.engine) as session:
            statement = (
                select(func.count())
                .select_from(MaritimeScenario)
                .where(
                    col(MaritimeScenario.command_class) == command_class,
                    col(MaritimeScenario.is_active).is_(True),
                )
            )
            result = await session.execute(statement)
            return int(result.scalar_one())

    async def is_ready(self, command_class: str) -> bool:
        return await self.count_active(command_class) >= self._required

    async def ensure_ready(self, command_class: str) -> int:
        """Raise ScenarioBankIncomplete unless enough scenarios are active.

        Returns the active count.
        """
        found = await self.count_active(command_class)
        if found < self._required:
            logger.info(
                "scenario_bank_incomplete",
                command_class=command_class,
                required=self._required,
                found=found,
            )
            raise ScenarioBankIncomplete(command_class, self._required, found)
        return found
