"""
Pydantic data models for API requests, responses and persisted records.
"""
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class Message(BaseModel):
    """Chat message model."""
    id: str
    role: Literal["user", "assistant"]
    content: str
    images: Optional[List[str]] = None
    memory_log: Optional[List[str]] = None


class ChatSession(BaseModel):
    """A conversation and the messages it owns."""
    id: str
    title: str
    last_used: float
    messages: List[Message] = Field(default_factory=list)
    model_id: str
    rag_directory: Optional[str] = None


class MemoryEntry(BaseModel):
    """One memorized message with its embedding."""
    id: str
    content: str
    role: Literal["user", "assistant"]
    embedding: List[float]
    timestamp: float
    chat_id: str


class UsageEntry(BaseModel):
    """Usage audit record."""
    timestamp: float
    kind: Literal["message", "completion"]
    character_count: int


class ChatRequest(BaseModel):
    """Chat request model for a single user turn."""
    model: str
    prompt: str = Field("", max_length=20000)
    session_id: Optional[str] = None
    image: Optional[str] = Field(None, description="URI or path of one attached image")
    tools_enabled: bool = False
    rag_directory: Optional[str] = None
