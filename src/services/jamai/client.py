"""
JamAI Base client for generation tables.

Adds rows to generation tables with streamed responses and provisions the
tables the review checks write into.
"""

from typing import Dict, Generator, List, Optional

import httpx

from src.core.config import settings
from src.core.review_config import GenerationConfig, review_settings
from src.exceptions.review_exceptions import (
    GenerationTransportException,
    UnexpectedStatusException,
)
from src.models.schemas.generation import (
    Column,
    ColumnAgent,
    ColumnGenConfig,
    ColumnRagParams,
    CreateKnowledgeTableRequest,
    CreateTableRequest,
    GenerationRequest,
    Message,
    TableType,
)
from src.services.jamai.stream_collector import collect_response_text
from src.utils.logging import get_logger

logger = get_logger(__name__)

ACCEPTED_STATUS_CODES = (httpx.codes.OK, httpx.codes.CONFLICT)


class JamAIAuth(httpx.Auth):
    """Injects the API key and project headers into every request."""

    def __init__(self, api_key: str, project_id: str):
        self.api_key = api_key
        self.project_id = project_id

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self.api_key:
            request.headers["Authorization"] = f"Bearer {self.api_key}"
        if self.project_id:
            request.headers["X-PROJECT-ID"] = self.project_id
        yield request


class JamAIClient:
    """
    Generation tables client.

    The underlying httpx.AsyncClient is shared by all calls and is safe to use
    from concurrent commit analyses.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        project_id: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.JAMAI_BASE_URL).rstrip("/")
        self._client = httpx.AsyncClient(
            auth=JamAIAuth(
                api_key if api_key is not None else settings.JAMAI_API_KEY,
                project_id if project_id is not None else settings.JAMAI_PROJECT_ID,
            ),
            headers={"Accept": "application/json", "Content-Type": "application/json"},
            timeout=httpx.Timeout(timeout or review_settings.limits.request_timeout_seconds),
            transport=transport,
        )

    async def __aenter__(self) -> "JamAIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(self, method: str, url: str, body: dict, stream: bool = False) -> httpx.Response:
        """
        Send a JSON request and check its status.

        With `stream=True` the returned response is still open; the caller
        must close it.

        Raises:
            GenerationTransportException: If the request cannot be sent
            UnexpectedStatusException: For any status other than 200 or 409
        """
        request = self._client.build_request(method, url, json=body)
        try:
            response = await self._client.send(request, stream=stream)
        except httpx.TransportError as e:
            raise GenerationTransportException(f"{method} {url}", str(e)) from e

        if response.status_code not in ACCEPTED_STATUS_CODES:
            try:
                body_text = (await response.aread()).decode("utf-8", errors="replace")
            except httpx.TransportError:
                body_text = ""
            finally:
                await response.aclose()
            raise UnexpectedStatusException(response.status_code, body_text)

        return response

    async def add_row(
        self,
        table_type: TableType,
        table_id: str,
        row: Dict[str, str],
    ) -> httpx.Response:
        """Add one row to a table and return the open streamed response."""
        url = f"{self.base_url}/{table_type.value}/rows/add"
        payload = GenerationRequest.single_row(table_id, row, stream=True)
        logger.debug(f"Adding row to {table_type.value} table {table_id} with fields {sorted(row)}")
        return await self._send("POST", url, payload.model_dump(), stream=True)

    async def generate_text(
        self,
        table_type: TableType,
        table_id: str,
        row: Dict[str, str],
        output_column: str,
    ) -> str:
        """Add a row and return the aggregated text generated for `output_column`."""
        response = await self.add_row(table_type, table_id, row)
        return await collect_response_text(response, output_column)

    async def create_table(
        self,
        table_type: TableType,
        table_id: str,
        agents: List[ColumnAgent],
        generation: GenerationConfig,
    ) -> bool:
        """
        Create a generation table; columns with a system prompt are generated.

        Returns:
            True if created, False if the table already existed
        """
        if table_type == TableType.KNOWLEDGE:
            return await self.create_knowledge_table(table_id, generation)

        cols = []
        for agent in agents:
            gen_config = None
            if agent.system_prompt:
                gen_config = ColumnGenConfig(
                    model=generation.model,
                    messages=[Message(role="system", content=agent.system_prompt)],
                    temperature=generation.temperature,
                    max_tokens=generation.max_tokens,
                    top_p=generation.top_p,
                    rag_params=self._rag_params(agent, generation),
                )
            cols.append(Column(id=agent.column_id, gen_config=gen_config))

        url = f"{self.base_url}/{table_type.value}"
        payload = CreateTableRequest(id=table_id, cols=cols)
        response = await self._send("POST", url, payload.model_dump(exclude_none=True))
        return self._log_creation(response, f"{table_type.value} table {table_id}")

    async def create_knowledge_table(self, table_id: str, generation: GenerationConfig) -> bool:
        url = f"{self.base_url}/{TableType.KNOWLEDGE.value}"
        payload = CreateKnowledgeTableRequest(id=table_id, embedding_model=generation.embedding_model)
        response = await self._send("POST", url, payload.model_dump(exclude_none=True))
        return self._log_creation(response, f"knowledge table {table_id}")

    @staticmethod
    def _rag_params(agent: ColumnAgent, generation: GenerationConfig) -> Optional[ColumnRagParams]:
        table_id = agent.table_id or generation.rag_params.table_id
        if not agent.system_prompt or not table_id:
            return None
        return ColumnRagParams(
            k=generation.rag_params.k,
            reranking_model=generation.rag_params.reranking_model,
            table_id=table_id,
        )

    @staticmethod
    def _log_creation(response: httpx.Response, what: str) -> bool:
        if response.status_code == httpx.codes.CONFLICT:
            logger.info(f"{what} already exists")
            return False
        logger.info(f"{what} created successfully")
        return True
