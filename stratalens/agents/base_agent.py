"""Base agent class for the AI analysis agents."""

from abc import ABC, abstractmethod
from stratalens.config import settings
from stratalens.core.state import AnalysisRequest
from stratalens.utils.llm_utils import call_llm, rows_payload
import logging
from typing import Any, Dict
from langchain_core.prompts import ChatPromptTemplate

logger = logging.getLogger(__name__)


class Agent(ABC):
    """Abstract base class for all agents.

    Holds the model choice and wraps the shared retrying LLM call.
    """

    def __init__(self, name: str, model: str = None):
        """
        Initialize an agent.

        Args:
            name: Agent name
            model: Model identifier (defaults to config)
        """
        self.name = name
        self.model = model or settings.llm_model
        logger.info(f"Initialized {self.name} agent with model {self.model}")

    def ensure_configured(self) -> None:
        if not settings.nvidia_api_key:
            raise RuntimeError("API key is not configured.")

    def invoke(self, prompt: ChatPromptTemplate, input_data: dict) -> str:
        """Run *prompt* through the configured model (retry + timeout)."""
        self.ensure_configured()
        return call_llm(prompt, input_data, model=self.model)

    @staticmethod
    def sample_rows(request: AnalysisRequest, limit: int) -> str:
        return rows_payload(request.rows[:limit])

    @abstractmethod
    def execute(self, request: AnalysisRequest, user_context: dict | None = None) -> Any:
        """
        Execute the agent's task.

        Args:
            request: Headers, sample rows and (for chat) the conversation
            user_context: Optional dict for future auth / RBAC injection (no-op now).
        """
        pass

    def _log_action(self, action: str, details: Dict[str, Any] = None):
        """Log agent actions for visibility."""
        msg = f"[{self.name}] {action}"
        if details:
            msg += f" - {details}"
        logger.info(msg)
