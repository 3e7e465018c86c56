"""
Gemini API client for concept/argument annotation.

One request per call, no retries. Network and decoding failures are logged
and turned into an empty annotation so the batch can keep going.
"""

import logging
from typing import Any, Dict, Optional

import requests

from bulk_annotator.annotator_config import (
    AnnotatorConfig,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_GEMINI_TIMEOUT,
    GEMINI_ENDPOINT,
)
from bulk_annotator.prompts import build_annotation_prompt

logger = logging.getLogger(__name__)


def extract_candidate_text(data: Any) -> Optional[str]:
    """
    Decode candidates[0].content.parts[0].text from a generateContent response.

    Returns None if any level is missing, has the wrong type, or the text is empty.
    """
    if not isinstance(data, dict):
        return None

    candidates = data.get('candidates')
    if not isinstance(candidates, list) or not candidates:
        return None

    candidate = candidates[0]
    if not isinstance(candidate, dict):
        return None

    content = candidate.get('content')
    if not isinstance(content, dict):
        return None

    parts = content.get('parts')
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None

    text = parts[0].get('text')
    if not isinstance(text, str) or not text:
        return None
    return text


class GeminiAnnotator:
    """Gemini API client for drawing a short conclusion about a concept/argument pair."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        timeout: Optional[float] = DEFAULT_GEMINI_TIMEOUT,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: Gemini API key, sent as the `key` query parameter
            model: Model name used in the endpoint path
            timeout: Seconds before the request is abandoned (None waits forever)
            session: Optional requests session (defaults to module-level requests)
        """
        self.api_key = api_key
        self.model = model
        self.url = GEMINI_ENDPOINT.format(model=model)
        self.timeout = timeout
        self.http = session or requests
        self.total_requests = 0
        self.failed_requests = 0
        self.total_input_tokens = 0
        self.total_output_tokens = 0

    @classmethod
    def from_config(cls, config: AnnotatorConfig) -> 'GeminiAnnotator':
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            timeout=config.gemini_timeout,
        )

    def draw_conclusion(self, preprompt: str, concept: Optional[str], argument: Optional[str]) -> str:
        """
        Ask Gemini for a short opinion on how well `concept` matches `argument`.

        Args:
            preprompt: Instruction placed before the concept/argument lines
            concept: Concept text
            argument: Argument text

        Returns:
            The model's text, or "" if an input is empty or the call failed
        """
        if not concept or not argument:
            return ""

        prompt = build_annotation_prompt(preprompt, concept, argument)
        payload = {
            'contents': [
                {
                    'parts': [
                        {'text': prompt}
                    ]
                }
            ]
        }

        self.total_requests += 1
        try:
            response = self.http.post(
                self.url,
                params={'key': self.api_key},
                json=payload,
                headers={'Content-Type': 'application/json'},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"Error calling Gemini API: {e}")
            self.failed_requests += 1
            return ""

        try:
            data = response.json()
        except ValueError as e:
            logger.error(f"Failed to parse Gemini response (HTTP {response.status_code}): {e}")
            self.failed_requests += 1
            return ""

        self._track_usage(data)

        conclusion = extract_candidate_text(data)
        if conclusion is None:
            logger.warning(f"No conclusion found (HTTP {response.status_code}): {data}")
            self.failed_requests += 1
            return ""

        return conclusion

    def _track_usage(self, data: Any):
        if not isinstance(data, dict):
            return
        usage = data.get('usageMetadata') or {}
        self.total_input_tokens += usage.get('promptTokenCount', 0) or 0
        self.total_output_tokens += usage.get('candidatesTokenCount', 0) or 0

    def get_usage_stats(self) -> Dict[str, Any]:
        """Get request and token usage statistics."""
        return {
            'requests': self.total_requests,
            'failed_requests': self.failed_requests,
            'input_tokens': self.total_input_tokens,
            'output_tokens': self.total_output_tokens,
            'total_tokens': self.total_input_tokens + self.total_output_tokens,
        }


def generate_annotation(template: str, concept_text: Optional[str], argument_text: Optional[str], api_key: str) -> str:
    """One-off annotation call with default model and timeout."""
    return GeminiAnnotator(api_key).draw_conclusion(template, concept_text, argument_text)
