"""
Missing Products Tracker - Groq Integration

Chat completions through Groq's OpenAI-compatible API, using the
OpenAI SDK pointed at Groq's base URL.

Base URL: https://api.groq.com/openai/v1
Authentication: GROQ_API_KEY
"""

import os
from typing import Optional

from openai import OpenAI


# ============================================================
# CONFIGURATION
# ============================================================

GROQ_CONFIG = {
    'api_key': os.environ.get('GROQ_API_KEY', ''),
    'model': os.environ.get('GROQ_MODEL', 'llama-3.3-70b-versatile'),
    'base_url': os.environ.get('GROQ_BASE_URL', 'https://api.groq.com/openai/v1'),
    'timeout': float(os.environ.get('GROQ_TIMEOUT', '60')),
}


class GroqError(Exception):
    """Groq is not usable (e.g. missing API key)"""


class GroqClient:
    """
    Client for Groq chat completions.

    Usage:
        client = GroqClient()
        reply = client.chat([
            {'role': 'system', 'content': 'You are terse.'},
            {'role': 'user', 'content': 'Hello'},
        ])
    """

    def __init__(
        self,
        api_key: str = None,
        model: str = None,
        base_url: str = None,
        timeout: float = None,
        client: OpenAI = None
    ):
        self.api_key = api_key or GROQ_CONFIG['api_key']
        self.model = model or GROQ_CONFIG['model']
        self.base_url = base_url or GROQ_CONFIG['base_url']
        self.timeout = timeout or GROQ_CONFIG['timeout']
        self._client = client

    @property
    def client(self) -> OpenAI:
        """Lazy-load the OpenAI-compatible client"""
        if self._client is None:
            if not self.api_key:
                raise GroqError("GROQ_API_KEY not configured")
            self._client = OpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.timeout
            )
        return self._client

    def chat(self, messages: list[dict], temperature: float = 0.3) -> Optional[str]:
        """
        Send a message list and return the first choice's text.

        Args:
            messages: [{'role': ..., 'content': ...}, ...]
            temperature: Sampling temperature

        Returns:
            Generated text, or None if the response carries no content
        """
        resp = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
        )
        if not resp.choices:
            return None
        return resp.choices[0].message.content or None
