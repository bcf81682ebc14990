"""
Generation Service Schemas

Request bodies sent to the generation tables API and the chunk shape of its
streamed responses.
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class TableType(str, Enum):
    """Generation table kinds."""
    ACTION = "action"
    CHAT = "chat"
    KNOWLEDGE = "knowledge"


class GenerationRequest(BaseModel):
    """Body of a rows/add call: one row of field name to text."""

    table_id: str
    data: List[Dict[str, str]]
    stream: bool = True

    @classmethod
    def single_row(cls, table_id: str, row: Dict[str, str], stream: bool = True) -> "GenerationRequest":
        return cls(table_id=table_id, data=[row], stream=stream)


class StreamChunk(BaseModel):
    """
    One decoded data line of a streamed generation response.

    Built leniently from the raw JSON object: a column name that is not a
    string matches no caller, and choices, messages or contents of an
    unexpected type contribute no text.
    """

    model_config = ConfigDict(frozen=True)

    output_column_name: Optional[str] = None
    fragments: List[str] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "StreamChunk":
        column = payload.get("output_column_name")
        if not isinstance(column, str):
            return cls()

        choices = payload.get("choices")
        fragments = []
        if isinstance(choices, list):
            for choice in choices:
                if not isinstance(choice, dict):
                    continue
                message = choice.get("message")
                if not isinstance(message, dict):
                    continue
                content = message.get("content")
                if isinstance(content, str):
                    fragments.append(content)

        return cls(output_column_name=column, fragments=fragments)


class Message(BaseModel):
    role: str
    content: str


class ColumnRagParams(BaseModel):
    k: int
    reranking_model: str
    table_id: Optional[str] = None


class ColumnGenConfig(BaseModel):
    model: str
    messages: List[Message]
    temperature: float
    max_tokens: int
    top_p: float
    rag_params: Optional[ColumnRagParams] = None


class Column(BaseModel):
    id: str
    dtype: str = "str"
    gen_config: Optional[ColumnGenConfig] = None


class CreateTableRequest(BaseModel):
    id: str
    cols: List[Column]


class CreateKnowledgeTableRequest(BaseModel):
    id: str
    cols: List[Column] = Field(default_factory=list)
    embedding_model: str


class ColumnAgent(BaseModel):
    """A table column and, for generated columns, the system prompt that drives it."""

    column_id: str
    system_prompt: Optional[str] = None
    # Knowledge table to retrieve context from; None disables RAG for the column
    table_id: Optional[str] = None
