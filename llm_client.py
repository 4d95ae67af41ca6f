"""
LLM Client - structured JSON completions from OpenAI with a hard per-call timeout

Every response is treated as a schema: a missing, empty or wrongly typed
required field raises AIResponseError instead of being read best-effort.
"""
import os
import re
import json
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Dict, Any, Optional

from openai import OpenAI, OpenAIError, APITimeoutError

from config import get_ai_settings

logger = logging.getLogger(__name__)


class AIResponseError(Exception):
    """The text-generation capability failed or returned an incomplete response"""
    pass


class AITimeoutError(AIResponseError):
    """The text-generation call did not finish within its time box"""
    pass


def clean_json_string(text: str) -> str:
    """Clean common JSON formatting issues from AI responses"""
    text = re.sub(r'```json\s*', '', text)
    text = re.sub(r'```\s*', '', text)
    text = re.sub(r',\s*]', ']', text)
    text = re.sub(r',\s*}', '}', text)
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f]', '', text)
    return text.strip()


def parse_json_object(text: Optional[str]) -> Dict[str, Any]:
    """
    Parse an AI response into a JSON object

    Raises:
        AIResponseError: empty text, invalid JSON, or a non-object payload
    """
    if not text or not text.strip():
        raise AIResponseError("Empty AI response")

    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find('{'), text.rfind('}')
        if start == -1 or end <= start:
            raise AIResponseError("AI response is not JSON")
        try:
            data = json.loads(clean_json_string(text[start:end + 1]))
        except json.JSONDecodeError as e:
            raise AIResponseError(f"JSON parsing error: {e}")

    if not isinstance(data, dict):
        raise AIResponseError(f"AI response is a JSON {type(data).__name__}, expected an object")
    return data


def validate_fields(data: Dict[str, Any], required_fields: Dict[str, type]) -> Dict[str, Any]:
    """
    Check required fields are present, correctly typed and non-empty

    Args:
        data: Parsed response
        required_fields: Field name -> expected type (str or list)

    Returns:
        Only the required fields, strings stripped

    Raises:
        AIResponseError: naming the first offending field
    """
    validated = {}
    for name, expected in required_fields.items():
        value = data.get(name)
        if value is None:
            raise AIResponseError(f"Incomplete AI response: missing '{name}'")
        if not isinstance(value, expected):
            raise AIResponseError(
                f"Incomplete AI response: '{name}' is {type(value).__name__}, expected {expected.__name__}"
            )
        if isinstance(value, str):
            value = value.strip()
        if not value:
            raise AIResponseError(f"Incomplete AI response: '{name}' is empty")
        validated[name] = value
    return validated


class OpenAIJSONClient:
    """
    Thin wrapper over chat completions in JSON mode.
    Retries are disabled: one failure or timeout is final for the caller.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[OpenAI] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
        max_workers: int = 4
    ):
        settings = get_ai_settings()
        self.model = model or settings.get('chat_model', 'gpt-4o')
        self.max_tokens = max_tokens or settings.get('max_tokens', 1500)

        if client is not None:
            self.client = client
        else:
            self.api_key = api_key or os.getenv("OPENAI_API_KEY")
            if not self.api_key:
                raise ValueError("OpenAI API key is required. Set OPENAI_API_KEY environment variable.")
            self.client = OpenAI(api_key=self.api_key, max_retries=0)

        # A timed-out call keeps its worker until the HTTP timeout= passed to
        # the request fires; future.cancel() cannot stop a running call
        self._executor = ThreadPoolExecutor(max_workers=max_workers)

    def close(self):
        """Shut down the worker pool without waiting for in-flight calls"""
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        required_fields: Dict[str, type],
        temperature: float = 0.7,
        timeout: float = 60.0
    ) -> Dict[str, Any]:
        """
        Request a JSON object and validate it

        Args:
            system_prompt: Persona and rules
            user_prompt: Task with profile context
            required_fields: Field name -> expected type
            temperature: Sampling temperature (creativity)
            timeout: Seconds before the call is abandoned

        Returns:
            Dict holding exactly the required fields

        Raises:
            AITimeoutError: call exceeded timeout
            AIResponseError: API error or invalid response
        """
        future = self._executor.submit(
            self.client.chat.completions.create,
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt}
            ],
            response_format={"type": "json_object"},
            temperature=temperature,
            max_tokens=self.max_tokens,
            timeout=timeout
        )

        try:
            response = future.result(timeout=timeout)
        except FuturesTimeoutError:
            raise AITimeoutError(f"OpenAI API timeout after {timeout:.0f} seconds")
        except APITimeoutError as e:
            raise AITimeoutError(f"OpenAI API timeout after {timeout:.0f} seconds") from e
        except OpenAIError as e:
            raise AIResponseError(f"OpenAI API error: {e}") from e

        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError) as e:
            raise AIResponseError(f"Unexpected response shape: {e}") from e

        return validate_fields(parse_json_object(content), required_fields)


# Factory function
def get_llm_client(api_key: Optional[str] = None) -> Optional[OpenAIJSONClient]:
    """Get the JSON completion client if configured"""
    try:
        return OpenAIJSONClient(api_key)
    except ValueError as e:
        logger.warning(f"Text generation unavailable: {e}")
        return None
