"""Service for publishing the running total in the bot's profile."""

import logging
from typing import Protocol

from ..messages import profile_description
from .analysis_service import AnalysisService

logger = logging.getLogger(__name__)


class ProfileWriter(Protocol):
    """Updates the bot's own profile (ATProtoClient in production)."""

    def update_profile_description(self, description: str) -> None: ...


class ProfileService:
    """Keep the profile description in sync with the analysis table."""

    def __init__(self, writer: ProfileWriter, analysis_service: AnalysisService, bot_handle: str):
        self.writer = writer
        self.analysis_service = analysis_service
        self.bot_handle = bot_handle

    async def update_profile(self) -> int:
        """Publish the current total, excluding the bot's own analysis.

        Returns:
            The total that was published.
        """
        total = await self.analysis_service.total_flagged_count(exclude_handle=self.bot_handle)
        logger.info("Total profanity count: %s", f"{total:,}")

        self.writer.update_profile_description(profile_description(total))
        logger.info("Profile description updated with %s total profanities", f"{total:,}")
        return total
