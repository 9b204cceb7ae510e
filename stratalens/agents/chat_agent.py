"""Conversational agent answering questions about the loaded dataset."""

from stratalens.agents.base_agent import Agent
from stratalens.core.state import AnalysisRequest, ChatMessage
from stratalens.config import settings
import logging
from langchain_core.prompts import ChatPromptTemplate

logger = logging.getLogger(__name__)

FAILURE_REPLY = "Sorry, I couldn't get an answer right now. Please try again."


class ChatAgent(Agent):
    """Answers questions strictly from the headers and sample rows it is given."""

    def __init__(self, model: str = None):
        super().__init__(name="ChatAgent", model=model)

        self.prompt = ChatPromptTemplate.from_messages([
            ("system", """You are a friendly, helpful data analysis assistant for an internal auditor.
Your knowledge is strictly limited to the data provided in this context.
Do not answer questions unrelated to this dataset. If a question cannot be answered
from the data, say clearly that the information is not available in the dataset.
Keep answers short and useful, and use **bold** for important points.

Column names: {headers}

Data sample (up to {row_count} rows):
{rows}

Conversation so far:
{history}"""),
            ("user", "{question}"),
        ])

    @staticmethod
    def format_history(history) -> str:
        speaker = {"user": "User", "ai": "Assistant"}
        return "\n".join(f"{speaker[m.sender]}: {m.text}" for m in history)

    def execute(self, request: AnalysisRequest, user_context: dict | None = None) -> ChatMessage:
        """Answer ``request.question``; a failure becomes an apologetic assistant reply."""
        self._log_action("Answering question", {"history": len(request.history)})
        rows = request.rows[: settings.chat_sample_rows]
        try:
            reply = self.invoke(self.prompt, {
                "headers": ", ".join(request.headers),
                "row_count": len(rows),
                "rows": self.sample_rows(request, settings.chat_sample_rows),
                "history": self.format_history(request.history),
                "question": request.question,
            })
            return ChatMessage(sender="ai", text=reply.strip())
        except Exception as e:
            logger.error(f"Chat request failed: {str(e)}")
            return ChatMessage(sender="ai", text=FAILURE_REPLY)
