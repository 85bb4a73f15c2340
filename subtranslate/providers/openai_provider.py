"""OpenAI chat-completion translation provider"""

import logging
import re
from typing import Optional

import openai
from babelfish import Language
from babelfish.exceptions import Error as BabelfishError
from openai import OpenAI

from .base_provider import TranslationProvider
from ..utils.exceptions import TranslationFailed

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-3.5-turbo"

SYSTEM_PROMPT = """Translate the following {source} .srt subtitle text to {target}.
Preserve the .srt format exactly, including timestamps, line numbers, and line breaks.
Translate only the dialogue/text portions.
Ensure the output is valid UTF-8 encoded {target} text.
Return only the translated subtitle text."""

CODE_FENCE_RE = re.compile(r'^\s*```[\w-]*\n|\n?```\s*$')


def language_name(code: str) -> str:
    """English name for an IETF/ISO language code, e.g. 'he' -> 'Hebrew'"""
    try:
        return Language.fromietf(code).name
    except (BabelfishError, ValueError):
        return code


class OpenAITranslationProvider(TranslationProvider):
    """Translates subtitle text with an OpenAI-compatible chat endpoint"""

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL, timeout: float = 120,
                 base_url: Optional[str] = None, client: Optional[OpenAI] = None):
        self.model = model
        self.timeout = timeout
        # Retries stay off; a failed batch fails the whole translation
        self.client = client or OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
        )

    def build_messages(self, text: str, source_language: str, target_language: str):
        prompt = SYSTEM_PROMPT.format(
            source=language_name(source_language),
            target=language_name(target_language),
        )
        return [
            {'role': 'system', 'content': prompt},
            {'role': 'user', 'content': text},
        ]

    def translate_text(self, text: str, source_language: str, target_language: str) -> str:
        """Translate subtitle text, keeping its structure intact"""
        try:
            chat = self.client.chat.completions.create(
                model=self.model,
                messages=self.build_messages(text, source_language, target_language),
                timeout=self.timeout,
            )
        except openai.APITimeoutError as e:
            logger.error(f"Translation request timed out after {self.timeout}s: {e}")
            raise TranslationFailed(f"Translation timed out: {e}")
        except openai.OpenAIError as e:
            logger.error(f"Error calling translation API: {e}")
            raise TranslationFailed(f"Translation API error: {e}")

        if not chat.choices or not chat.choices[0].message or not chat.choices[0].message.content:
            logger.error("Invalid response structure from translation API")
            raise TranslationFailed("Translation API returned no content")

        if chat.choices[0].finish_reason == 'length':
            raise TranslationFailed("Translation was truncated by the model output limit")

        return CODE_FENCE_RE.sub('', chat.choices[0].message.content)

    def close(self):
        self.client.close()
