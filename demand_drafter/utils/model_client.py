"""
Generative Model Client
Thin wrapper over the Anthropic Messages API: one prompt, an optional inline
PDF attachment, raw text back. Every call runs under a bounded exponential
backoff.
"""

import base64
import logging
import time
from typing import Callable, Optional

import anthropic
from anthropic import Anthropic

from ..config import Config
from ..errors import ModelCallError

logger = logging.getLogger(__name__)

# Client errors that will fail the same way on every attempt
NON_RETRYABLE_ERRORS = (
    anthropic.BadRequestError,
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
)


def backoff_delays(max_attempts: int, initial_delay: float, multiplier: float):
    """Delays slept between attempts: initial, initial*m, initial*m^2, ..."""
    return [initial_delay * (multiplier ** i) for i in range(max(max_attempts - 1, 0))]


def retry_with_backoff(
    func: Callable,
    *args,
    max_attempts: int = 3,
    initial_delay: float = 2.0,
    multiplier: float = 1.5,
    sleep: Optional[Callable[[float], None]] = None,
    description: str = 'model call',
    **kwargs,
):
    """
    Call `func` until it succeeds or `max_attempts` is used up.

    Raises ModelCallError carrying the last failure once the budget is spent.
    """
    sleep = sleep or time.sleep
    delays = backoff_delays(max_attempts, initial_delay, multiplier)
    last_exception = None

    for attempt in range(1, max_attempts + 1):
        try:
            return func(*args, **kwargs)
        except NON_RETRYABLE_ERRORS as e:
            logger.error(f"{description} rejected, not retrying: {e}")
            raise ModelCallError(f"{description} failed: {e}", attempts=attempt) from e
        except Exception as e:
            last_exception = e
            if attempt >= max_attempts:
                break
            delay = delays[attempt - 1]
            logger.warning(
                f"{description} failed on attempt {attempt}/{max_attempts}, "
                f"retrying in {delay:.1f}s: {e}"
            )
            sleep(delay)

    logger.error(f"{description} failed after {max_attempts} attempts: {last_exception}")
    raise ModelCallError(
        f"{description} failed after {max_attempts} attempts: {last_exception}",
        attempts=max_attempts,
    ) from last_exception


class ModelClient:
    """Submits prompts (and optional PDF bytes) to Claude and returns its text."""

    def __init__(self, config: Config, client: Optional[Anthropic] = None):
        self.config = config
        self.model = config.model
        self.client = client or Anthropic(api_key=config.anthropic_api_key)

    def generate(
        self,
        prompt: str,
        attachment: Optional[bytes] = None,
        media_type: str = 'application/pdf',
        max_tokens: Optional[int] = None,
        system: Optional[str] = None,
        description: str = 'model call',
    ) -> str:
        content = self._build_content(prompt, attachment, media_type)
        request = {
            'model': self.model,
            'max_tokens': max_tokens or self.config.extraction_max_tokens,
            'messages': [{'role': 'user', 'content': content}],
        }
        if system:
            request['system'] = system

        return retry_with_backoff(
            self._create,
            request,
            max_attempts=self.config.max_attempts,
            initial_delay=self.config.retry_delay,
            multiplier=self.config.retry_multiplier,
            description=description,
        )

    def _create(self, request: dict) -> str:
        response = self.client.messages.create(**request)
        text = ''.join(
            block.text for block in response.content if getattr(block, 'type', None) == 'text'
        )
        if not text.strip():
            raise ValueError('Empty response from model')
        return text

    @staticmethod
    def _build_content(prompt: str, attachment: Optional[bytes], media_type: str):
        if attachment is None:
            return prompt
        return [
            {
                'type': 'document',
                'source': {
                    'type': 'base64',
                    'media_type': media_type,
                    'data': base64.standard_b64encode(attachment).decode('ascii'),
                },
            },
            {'type': 'text', 'text': prompt},
        ]
