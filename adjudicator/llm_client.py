"""
LLM Client (Reasoning Engine)
=============================

Supports:
- Google Gemini (default)
- OpenRouter (Claude, GPT, Mistral, etc.)
- DeepSeek

Single operation: generate(prompt) -> text.
Configuration problems are detectable up front via is_configured();
call failures raise ReasoningEngineError.
"""

import json
import logging
import hashlib
import httpx
from typing import Optional, Dict, Any, Tuple
from dataclasses import dataclass, field

from .config import Settings
from .errors import ReasoningEngineUnavailable, ReasoningEngineError
from .schemas import LLMMode

logger = logging.getLogger(__name__)


# =============================================================================
# JSON extraction
# =============================================================================

def _balanced_end(content: str, start: int) -> Optional[int]:
    """Index of the brace closing the one at start, or None if it never closes"""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(content)):
        char = content[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return i

    return None


def find_first_json_object(content: str) -> Optional[str]:
    """
    Return the first balanced {...} region of content, or None.

    Braces inside JSON string literals are ignored. A stray "{" that never
    closes is skipped and the search resumes at the next one.
    """
    if not content:
        return None

    start = content.find("{")
    while start != -1:
        end = _balanced_end(content, start)
        if end is not None:
            return content[start:end + 1]
        start = content.find("{", start + 1)

    return None


def parse_json_object(content: str) -> Tuple[Optional[Dict[str, Any]], bool, str]:
    """
    Parse the first embedded JSON object in LLM output.

    Handles prose before/after the object and markdown code fences.

    Returns:
        Tuple of (parsed_dict, success, error_message)
    """
    if not content or not content.strip():
        return None, False, "Empty content"

    block = find_first_json_object(content)
    if block is None:
        return None, False, "No JSON object found"

    try:
        data = json.loads(block)
    except json.JSONDecodeError as e:
        return None, False, str(e)

    if not isinstance(data, dict):
        return None, False, "JSON value is not an object"

    return data, True, ""


def safe_log_content(content: str, max_chars: int = 120) -> str:
    """
    Create a safe log representation of content.

    Args:
        content: Content to log
        max_chars: Maximum characters to show

    Returns:
        Safe log string with length and hash
    """
    if not content:
        return "(empty)"

    content_hash = hashlib.sha256(content.encode()).hexdigest()[:12]
    preview = content[:max_chars].replace('\n', ' ')

    return f"len={len(content)} hash={content_hash} preview='{preview}...'"


@dataclass
class LLMResponse:
    """Response from LLM"""
    content: str
    model: str
    usage: Dict[str, int] = field(default_factory=dict)
    raw_response: Optional[Dict] = None


class LLMClient:
    """
    Unified LLM client for Gemini, OpenRouter and DeepSeek.

    Usage:
        client = LLMClient(settings)
        text = await client.generate("Render a verdict...")
    """

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client"""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.settings.llm_timeout)
        return self._http_client

    async def close(self):
        """Close HTTP client"""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def model_name(self) -> str:
        mode = self.settings.llm_mode
        if mode == LLMMode.OPENROUTER:
            return self.settings.openrouter_model
        if mode == LLMMode.DEEPSEEK:
            return self.settings.deepseek_model
        return self.settings.gemini_model

    def is_configured(self) -> bool:
        """True when the selected provider has credentials"""
        mode = self.settings.llm_mode
        if mode == LLMMode.GEMINI:
            return bool(self.settings.gemini_api_key)
        if mode == LLMMode.OPENROUTER:
            return bool(self.settings.openrouter_api_key)
        if mode == LLMMode.DEEPSEEK:
            return bool(self.settings.deepseek_api_key)
        return False

    async def generate(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """
        Generate text from the configured provider.

        Raises:
            ReasoningEngineUnavailable: LLM_MODE is none or the API key is missing
            ReasoningEngineError: The call failed or returned no content
        """
        response = await self.generate_response(prompt, system_prompt)
        return response.content

    async def generate_response(self, prompt: str, system_prompt: Optional[str] = None) -> LLMResponse:
        if not self.is_configured():
            raise ReasoningEngineUnavailable(
                f"Reasoning engine not configured (LLM_MODE={self.settings.llm_mode.value})",
                user_message="AI judge is not configured. Please set the API key for the selected LLM_MODE.",
            )

        mode = self.settings.llm_mode
        try:
            if mode == LLMMode.GEMINI:
                return await self._generate_gemini(prompt, system_prompt)
            return await self._generate_chat_completions(prompt, system_prompt)
        except httpx.HTTPStatusError as e:
            logger.error(f"{mode.value} API error: {e.response.status_code} - {safe_log_content(e.response.text)}")
            raise ReasoningEngineError(
                f"{mode.value} API error: {e.response.status_code}",
                user_message="Failed to get a response from the AI judge",
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"{mode.value} request failed: {e}")
            raise ReasoningEngineError(
                f"{mode.value} request failed: {e}",
                user_message="Failed to get a response from the AI judge",
            ) from e
        except ValueError as e:
            # Non-JSON body from the provider
            logger.error(f"{mode.value} returned an unreadable body: {e}")
            raise ReasoningEngineError(
                f"{mode.value} returned an unreadable body",
                user_message="Failed to get a response from the AI judge",
            ) from e

    async def _generate_gemini(self, prompt: str, system_prompt: Optional[str]) -> LLMResponse:
        """Generate via Google Gemini API"""
        client = await self._get_client()

        full_prompt = prompt
        if system_prompt:
            full_prompt = f"{system_prompt}\n\n{prompt}"

        payload = {
            "contents": [
                {
                    "parts": [{"text": full_prompt}]
                }
            ],
            "generationConfig": {
                "temperature": self.settings.llm_temperature,
                "topP": self.settings.llm_top_p,
                "maxOutputTokens": self.settings.llm_max_tokens,
            }
        }

        url = f"{self.settings.gemini_base_url}/models/{self.settings.gemini_model}:generateContent"

        response = await client.post(
            url,
            json=payload,
            params={"key": self.settings.gemini_api_key}
        )
        response.raise_for_status()
        data = response.json()

        # Blocked/filtered responses have no candidates
        try:
            content = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"Gemini response missing content: {e}")
            raise ReasoningEngineError(f"Gemini response missing content: {e}")

        usage_metadata = data.get("usageMetadata", {})

        return LLMResponse(
            content=content or "",
            model=self.settings.gemini_model,
            usage={
                "input_tokens": usage_metadata.get("promptTokenCount", 0),
                "output_tokens": usage_metadata.get("candidatesTokenCount", 0)
            },
            raw_response=data
        )

    async def _generate_chat_completions(self, prompt: str, system_prompt: Optional[str]) -> LLMResponse:
        """
        Generate via an OpenAI-compatible chat completions API
        (OpenRouter and DeepSeek).
        """
        client = await self._get_client()

        if self.settings.llm_mode == LLMMode.OPENROUTER:
            base_url = self.settings.openrouter_base_url
            api_key = self.settings.openrouter_api_key
            extra_headers = {"X-Title": "Adjudicator AI Judge"}
        else:
            base_url = self.settings.deepseek_base_url
            api_key = self.settings.deepseek_api_key
            extra_headers = {}

        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload = {
            "model": self.model_name,
            "messages": messages,
            "max_tokens": self.settings.llm_max_tokens,
            "temperature": self.settings.llm_temperature,
            "top_p": self.settings.llm_top_p,
        }

        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            **extra_headers,
        }

        response = await client.post(
            f"{base_url}/chat/completions",
            json=payload,
            headers=headers
        )
        response.raise_for_status()
        data = response.json()

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.error(f"{self.settings.llm_mode.value} response missing content: {e}")
            raise ReasoningEngineError(f"Response missing content: {e}")

        if content is None:
            logger.warning(f"{self.settings.llm_mode.value} returned null content")
            content = ""

        usage = data.get("usage", {})

        return LLMResponse(
            content=content,
            model=self.model_name,
            usage={
                "input_tokens": usage.get("prompt_tokens", 0),
                "output_tokens": usage.get("completion_tokens", 0)
            },
            raw_response=data
        )
