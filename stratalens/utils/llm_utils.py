"""Shared LLM call wrapper with retry logic, model selection, and reply parsing."""

import logging
import json
import re
import threading
from typing import Any, Dict, List, Tuple
from langchain_nvidia_ai_endpoints import ChatNVIDIA
from langchain_core.prompts import ChatPromptTemplate
from tenacity import retry, stop_after_attempt, wait_exponential, before_sleep_log
from stratalens.config import settings

logger = logging.getLogger(__name__)

_THINK_TAGS = re.compile(r"<think>.*?</think>", re.DOTALL)
_JSON_FENCE = "```json"


def get_llm(model: str | None = None, temperature: float | None = None, max_tokens: int | None = None) -> ChatNVIDIA:
    """Create a ChatNVIDIA instance with optional model override."""
    return ChatNVIDIA(
        model=model or settings.llm_model,
        api_key=settings.nvidia_api_key,
        base_url=settings.openai_base_url,
        max_tokens=max_tokens or settings.llm_max_tokens,
        temperature=temperature if temperature is not None else settings.llm_temperature,
        timeout=settings.llm_timeout,
    )


def _invoke_with_timeout(chain, input_data: dict, timeout: int | None = None):
    """Invoke a LangChain chain with a thread-based timeout.

    Raises TimeoutError if the call exceeds *timeout* seconds.
    """
    timeout = timeout or settings.llm_timeout
    result_holder: list = []
    error_holder: list = []

    def _target():
        try:
            result_holder.append(chain.invoke(input_data))
        except Exception as e:
            error_holder.append(e)

    thread = threading.Thread(target=_target, daemon=True)
    thread.start()
    thread.join(timeout=timeout)

    if thread.is_alive():
        logger.error(f"LLM call timed out after {timeout}s")
        raise TimeoutError(f"LLM call did not complete within {timeout}s")

    if error_holder:
        raise error_holder[0]

    return result_holder[0]


@retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def call_llm(
    prompt_template: ChatPromptTemplate,
    input_data: dict,
    model: str | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
    timeout: int | None = None,
) -> str:
    """Invoke an LLM chain with retry + timeout and return the raw content string."""
    llm = get_llm(model=model, temperature=temperature, max_tokens=max_tokens)
    chain = prompt_template | llm
    logger.info(f"LLM call starting (model={model or settings.llm_model}, timeout={timeout or settings.llm_timeout}s)")
    response = _invoke_with_timeout(chain, input_data, timeout=timeout)
    logger.info("LLM call completed")
    return response.content


def strip_think_tags(content: str) -> str:
    """Drop <think>...</think> blocks emitted by reasoning models."""
    return _THINK_TAGS.sub("", content or "").strip()


def split_analysis_response(content: str) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Split an analysis reply into narrative lines and chart specs.

    Text before the first ```json fence becomes the non-blank lines; the
    fenced JSON list after it becomes the chart specs. A missing fence or
    malformed JSON yields no charts.
    """
    text = strip_think_tags(content)
    narrative, _, tail = text.partition(_JSON_FENCE)
    lines = [line for line in narrative.split("\n") if line.strip()]

    charts: List[Dict[str, Any]] = []
    if tail:
        payload = tail.split("```", 1)[0].strip()
        try:
            parsed = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Could not parse chart JSON from analysis reply: {e}")
            parsed = []
        if isinstance(parsed, dict):
            parsed = [parsed]
        if isinstance(parsed, list):
            charts = [c for c in parsed if isinstance(c, dict)]

    return lines, charts


def rows_payload(rows: List[Dict[str, Any]]) -> str:
    """JSON text of sample rows for a prompt (non-JSON cells stringified)."""
    return json.dumps(rows, indent=2, ensure_ascii=False, default=str)


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 chars per token)."""
    return len(text) // 4
