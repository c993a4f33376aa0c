"""Response generator: one LiteLLM chat completion per query."""

from __future__ import annotations

from loguru import logger

from docrag.config import GenerationCfg
from docrag.errors import GenerationFailedError
from docrag.generate.templates import build_prompt
from docrag.rag import llm_client


class ResponseGenerator:
    """Produce the assistant answer for a query and its assembled context."""

    def __init__(self, cfg: GenerationCfg | None = None) -> None:
        self._cfg = cfg or GenerationCfg()

    @property
    def model(self) -> str:
        return self._cfg.model

    async def generate(self, query: str, context: str) -> str:
        """Return the model's answer text.

        Raises:
            GenerationFailedError: On any provider error or an empty answer.
        """
        prompt = build_prompt(query, context)
        try:
            text = await llm_client.complete(
                model=self._cfg.model,
                messages=prompt.to_messages(),
                max_tokens=self._cfg.max_tokens,
                temperature=self._cfg.temperature,
                num_retries=self._cfg.num_retries,
            )
        except Exception as exc:
            logger.error(f"Generation with {self._cfg.model} failed: {exc}")
            raise GenerationFailedError(f"Generation failed: {exc}") from exc

        if not text.strip():
            raise GenerationFailedError(f"Model {self._cfg.model} returned an empty response")
        return text
