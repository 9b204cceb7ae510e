"""Insights agent: narrative audit analysis of a data sample plus chart proposals."""

import time
from stratalens.agents.base_agent import Agent
from stratalens.core.state import AnalysisRequest, AnalysisResult
from stratalens.config import settings
from stratalens.utils.llm_utils import estimate_tokens, split_analysis_response
from stratalens.utils.logger import audit, StepTimer
import logging
from langchain_core.prompts import ChatPromptTemplate

logger = logging.getLogger(__name__)


class InsightsAgent(Agent):
    """Agent that asks the LLM for a short, audit-focused report on the dataset."""

    def __init__(self, model: str = None):
        super().__init__(name="InsightsAgent", model=model)

        self.prompt = ChatPromptTemplate.from_messages([
            ("system", """You are an expert data analyst and internal auditor for a bank.
Analyse the data sample you are given carefully and write a report that is
**very concise, focused and visually scannable**.

Formatting and content rules:
1. Use **bold** generously for numbers, keywords and serious findings.
2. Be direct. Short, telegraphic sentences only.
3. Focus on **potential risks**, **outliers** and **illogical trends**.
4. Follow this structure exactly:

**🔍 Executive summary**
* (two bullets describing what the data is and what it is for)

**⚠️ Risk indicators and notable patterns**
* (3-4 short bullets on important relationships or outliers that need review)

**📊 Suggested visualisations**
* (a brief proposal for two charts that support the review)

After the text, provide the chart data as strict JSON inside a code block:
```json
[
  {{"type": "bar", "title": "Chart 1", "data": [{{"name": "X", "value": 10}}, {{"name": "Y", "value": 20}}]}},
  {{"type": "pie", "title": "Chart 2", "data": [{{"name": "A", "value": 30}}, {{"name": "B", "value": 70}}]}}
]
```
"""),
            ("user", "Column names: {headers}\n\nData sample (first {row_count} rows):\n{rows}"),
        ])

    def execute(self, request: AnalysisRequest, user_context: dict | None = None) -> AnalysisResult:
        """
        Analyse the first rows of the current view.

        Args:
            request: Headers plus the view rows (only the first
                ``ai_sample_rows`` are sent)
            user_context: Optional dict for future auth / RBAC injection.

        Returns:
            AnalysisResult; failures are reported in ``error``, never raised
        """
        audit("Insights requested", columns=len(request.headers), rows=len(request.rows))
        timer = StepTimer("InsightsAgent", logger)
        t0 = time.time()
        self._log_action("Starting data analysis with LLM")

        rows = request.rows[: settings.ai_sample_rows]
        try:
            with timer.step("build prompt"):
                payload = {
                    "headers": ", ".join(request.headers),
                    "row_count": len(rows),
                    "rows": self.sample_rows(request, settings.ai_sample_rows),
                }
                logger.debug(f"Analysis prompt ≈ {estimate_tokens(payload['rows'])} tokens of rows")

            with timer.step("LLM invoke"):
                content = self.invoke(self.prompt, payload)

            with timer.step("parse response"):
                lines, charts = split_analysis_response(content)
                result = AnalysisResult(lines=lines, charts=charts)

            self._log_action("Analysis completed", {"lines": len(lines), "charts": len(charts)})

        except TimeoutError:
            logger.error("InsightsAgent LLM call timed out")
            result = AnalysisResult(error="The AI analysis timed out. Please try again.")
        except Exception as e:
            logger.error(f"Error during data analysis: {str(e)}")
            result = AnalysisResult(error=f"Analysis failed: {str(e)}")

        timer.summary()
        audit("Insights finished", duration=round(time.time() - t0, 2), ok=result.error is None)
        return result
