"""
Table Provisioning

Idempotent setup of the generation tables a repository's reviews write into.
"""

from typing import List, Optional

from src.core.config import settings
from src.core.review_config import ReviewSettings, review_settings
from src.models.schemas.generation import ColumnAgent, TableType
from src.services.jamai.client import JamAIClient
from src.services.review.prompts import CHANGELOG_SYSTEM_PROMPT, SECRETS_SYSTEM_PROMPT
from src.utils.logging import get_logger

logger = get_logger(__name__)


def action_table_agents(config: ReviewSettings) -> List[ColumnAgent]:
    """Input columns followed by the generated columns that read them."""
    columns = config.columns
    return [
        ColumnAgent(column_id=columns.pull_request_body),
        ColumnAgent(column_id=columns.changelog_response, system_prompt=CHANGELOG_SYSTEM_PROMPT),
        ColumnAgent(column_id=columns.secrets_body),
        ColumnAgent(column_id=columns.secrets_response, system_prompt=SECRETS_SYSTEM_PROMPT),
    ]


async def provision_tables(
    jamai_client: JamAIClient,
    owner: str,
    repo: str,
    config: Optional[ReviewSettings] = None,
    bot_version: Optional[str] = None,
) -> dict:
    """
    Create the action and knowledge tables for a repository if missing.

    Returns:
        Mapping of table id to whether it was newly created
    """
    config = config or review_settings
    table_id = config.table_id_for(owner, repo, bot_version or settings.BOT_VERSION)

    created = {}
    created[table_id] = await jamai_client.create_table(
        TableType.ACTION, table_id, action_table_agents(config), config.generation
    )
    knowledge_id = f"knowledge_{table_id}"
    created[knowledge_id] = await jamai_client.create_knowledge_table(knowledge_id, config.generation)

    logger.info(f"Provisioned tables for {owner}/{repo}: {created}")
    return created
