"""Example tools, including one that delegates to another assistant."""

from __future__ import annotations

import logging

from langchain_core.tools import BaseTool, tool

from ..config import get_settings

logger = logging.getLogger(__name__)


@tool
async def company_research(company_name: str, website: str) -> str:
    """Research a company by asking the research assistant.

    Args:
        company_name: Name of the company.
        website: Company website URL.
    """

    from ..service import RunRequest, get_assistant_service

    settings = get_settings()
    try:
        result = await get_assistant_service().run(
            RunRequest(
                content=f"Research this company: {company_name} {website}",
                assistant_name=settings.research_assistant_name,
            )
        )
    except Exception:
        logger.exception("Error during company research for %s", company_name)
        return "An error occurred while researching the company."
    return str(result.response) if result.response else "No response received"


async def run_after(thread_id: str) -> None:
    """Completion hook that only records that the thread finished."""

    logger.info("runAfter: thread %s finished", thread_id)


def get_tools() -> list[BaseTool]:
    return [company_research]
