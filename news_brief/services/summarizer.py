"""Article summarizer backed by the OpenAI API."""

import json
from json import JSONDecodeError
from typing import Optional

from openai import AsyncOpenAI

from news_brief.log_system.unified_logger import UnifiedLogger


SYSTEM_PROMPT = """You summarize news articles for a news channel.
Respond ONLY with valid JSON following the schema below. No prose, no markdown.

Required JSON schema:
{
  "summary": "<a concise two-paragraph summary of the article>"
}"""

USER_PROMPT = "Provide 2 paragraphs summarizing the following article:\n\n{content}"


def _parse_summary_json(raw: str) -> Optional[str]:
    """Pull the summary text out of the model reply, None if unusable."""
    text = (raw or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text)
    except JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    summary = data.get("summary")
    if not isinstance(summary, str) or not summary.strip():
        return None
    return summary.strip()


class OpenAISummarizer:
    """Summarize article text with a chat completion model.

    Args:
        api_key: OpenAI API key
        model: Chat model name
        client: Preconfigured client (used by tests)
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4o-mini",
        client: Optional[AsyncOpenAI] = None,
    ):
        if client is None:
            if not api_key:
                raise RuntimeError(
                    "OPENAI_API_KEY is required. Set it in the environment or .env file."
                )
            client = AsyncOpenAI(api_key=api_key)
        self._client = client
        self._model = model
        self._logger = UnifiedLogger.get_logger(__name__)

    async def summarize(self, content: str) -> Optional[str]:
        """Return a two-paragraph summary of content, or None on any failure."""
        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": USER_PROMPT.format(content=content)},
                ],
                response_format={"type": "json_object"},
                temperature=0.3,
            )
        except Exception as e:
            self._logger.error(f"Summarization failed: {e}")
            return None

        raw = response.choices[0].message.content if response.choices else ""
        summary = _parse_summary_json(raw)
        if summary is None:
            self._logger.warning("Summarization returned no usable summary")
        return summary
