"""Agno agent logic for answer generation.

Responsibilities:
    - Agent initialization with OpenAI Responses models
    - Attaching the shared document store as a file search tool
    - Streaming text fragment generation
    - Classifying provider failures

Maintains clean separation from the HTTP layer.
"""

from src.agent.chat_agent import AgentService, GenerativeService

__all__ = ["AgentService", "GenerativeService"]
