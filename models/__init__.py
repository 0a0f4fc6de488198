"""
Models package exports.
"""
from models.api_models import Message, ChatSession, MemoryEntry, UsageEntry, ChatRequest
from models.chat_models import (
    ModelCapabilities,
    LocalModel,
    CloudModel,
    ModelDescriptor,
    ToolCall,
    ToolResult,
    CompletionResult,
    TurnState,
    TurnAction,
    TurnEvent,
    TurnContext,
)

__all__ = [
    'Message',
    'ChatSession',
    'MemoryEntry',
    'UsageEntry',
    'ChatRequest',
    'ModelCapabilities',
    'LocalModel',
    'CloudModel',
    'ModelDescriptor',
    'ToolCall',
    'ToolResult',
    'CompletionResult',
    'TurnState',
    'TurnAction',
    'TurnEvent',
    'TurnContext',
]
