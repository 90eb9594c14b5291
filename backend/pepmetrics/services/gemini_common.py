"""
Shared helpers for Gemini: run blocking generate_content in threadpool to avoid blocking the event loop.
Timeout and retry for transient errors (429, 5xx).
"""
from __future__ import annotations

import asyncio
import logging
import re

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from starlette.concurrency import run_in_threadpool

from pepmetrics.config import settings

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_PATTERN = re.compile(r"\b(429|5\d{2})\b")
MAX_ATTEMPTS = 3

SAFETY_SETTINGS = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_NONE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_NONE,
}


class GeminiUnavailableError(RuntimeError):
    """Gemini is not configured, or the call failed after retries."""


def _is_retryable_error(exc: BaseException) -> bool:
    msg = (getattr(exc, "message", None) or str(exc)) if exc else ""
    return bool(RETRYABLE_STATUS_PATTERN.search(msg))


def build_model(model_name: str, generation_config: dict, system_instruction: str | None = None):
    if not settings.google_gemini_api_key:
        raise GeminiUnavailableError("GOOGLE_GEMINI_API_KEY is not set")
    genai.configure(api_key=settings.google_gemini_api_key)
    return genai.GenerativeModel(
        model_name,
        generation_config=generation_config,
        safety_settings=SAFETY_SETTINGS,
        system_instruction=system_instruction,
    )


async def run_generate_content(model, contents):
    """
    Run model.generate_content(contents) in a thread pool with timeout.
    Retries with exponential backoff (1s, 2s) on timeouts and 429/5xx-like errors.
    """
    timeout = float(settings.gemini_request_timeout_seconds or 90)
    for attempt in range(MAX_ATTEMPTS):
        last_attempt = attempt == MAX_ATTEMPTS - 1
        try:
            return await asyncio.wait_for(run_in_threadpool(model.generate_content, contents), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Gemini request timed out after %ss (attempt %d)", timeout, attempt + 1)
            if last_attempt:
                raise
        except Exception as e:
            if last_attempt or not _is_retryable_error(e):
                raise
            logger.warning("Gemini request failed (attempt %d), retrying: %s", attempt + 1, e)
        await asyncio.sleep(2**attempt)
    raise RuntimeError("run_generate_content: unexpected exit")


def usage_tokens(response) -> tuple[int | None, int | None]:
    """(input, output) token counts from response.usage_metadata when present."""
    usage = getattr(response, "usage_metadata", None)
    if usage is None:
        return None, None
    return getattr(usage, "prompt_token_count", None), getattr(usage, "candidates_token_count", None)
