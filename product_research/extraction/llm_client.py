"""
LLM client for product extraction.

`ExtractionService` is the seam the orchestrator depends on. The Anthropic
implementation maps the "web_search" tool flag to Claude's server-side web
search tool for grounding.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..config import config
from ..errors import ExtractionServiceError
from ..logger import get_logger
from ..models import GenerationConfig, GenerationResponse, TokenUsage

logger = get_logger('llm_client')

WEB_SEARCH = "web_search"


class ExtractionService(ABC):
    """Abstract base class for AI extraction providers"""

    @abstractmethod
    def generate(self, model: str, prompt_parts: List[str],
                 generation_config: GenerationConfig,
                 tools: Optional[List[str]] = None) -> GenerationResponse:
        """Generate text for the prompt. Raises ExtractionServiceError on failure."""
        pass


class AnthropicExtractionService(ExtractionService):
    """Anthropic Claude interface"""

    def __init__(self, api_key: Optional[str] = None, client=None,
                 max_retries: int = 3, timeout: float = 120.0, max_searches: int = 5):
        if client is None:
            from anthropic import Anthropic

            api_key = api_key or config.ANTHROPIC_API_KEY
            if not api_key:
                raise ExtractionServiceError("Anthropic API key not found")
            # SDK retries rate limits, overloads and timeouts with backoff
            client = Anthropic(api_key=api_key, max_retries=max_retries, timeout=timeout)

        self.client = client
        self.max_searches = max_searches

    def _tool_specs(self, tools: Optional[List[str]]) -> list:
        specs = []
        for tool in tools or []:
            if tool == WEB_SEARCH:
                specs.append({
                    "type": "web_search_20250305",
                    "name": "web_search",
                    "max_uses": self.max_searches,
                })
            else:
                logger.warning(f"Ignoring unsupported tool: {tool}")
        return specs

    def generate(self, model: str, prompt_parts: List[str],
                 generation_config: GenerationConfig,
                 tools: Optional[List[str]] = None) -> GenerationResponse:
        from anthropic import APIError

        kwargs = {
            "model": model,
            "max_tokens": generation_config.max_output_tokens,
            "temperature": generation_config.temperature,
            "messages": [{"role": "user", "content": "\n\n".join(prompt_parts)}],
        }
        if generation_config.top_p is not None:
            kwargs["top_p"] = generation_config.top_p
        if generation_config.top_k is not None:
            kwargs["top_k"] = generation_config.top_k

        tool_specs = self._tool_specs(tools)
        if tool_specs:
            kwargs["tools"] = tool_specs

        try:
            response = self.client.messages.create(**kwargs)
        except APIError as e:
            raise ExtractionServiceError(f"Claude request failed: {e}") from e

        # Search results and tool-use blocks are interleaved with text blocks
        text = "".join(
            block.text for block in response.content
            if getattr(block, "type", None) == "text"
        )

        return GenerationResponse(text=text, usage=self._usage(response))

    @staticmethod
    def _usage(response) -> Optional[TokenUsage]:
        usage = getattr(response, "usage", None)
        if usage is None:
            return None

        server_tools = getattr(usage, "server_tool_use", None)
        searches = getattr(server_tools, "web_search_requests", 0) if server_tools else 0

        return TokenUsage(
            prompt_tokens=usage.input_tokens or 0,
            completion_tokens=usage.output_tokens or 0,
            search_requests=searches or 0,
        )


def get_extraction_service() -> ExtractionService:
    """Build the configured extraction service"""
    return AnthropicExtractionService()
