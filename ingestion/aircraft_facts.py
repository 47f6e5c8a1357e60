"""
Short aircraft facts from the Anthropic Messages API.
"""

import logging
from typing import Optional

import aiohttp

from contracts.constants import PROVIDER_ANTHROPIC

ANTHROPIC_MESSAGES_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
LOOKUP_TIMEOUT_SECONDS = 15

logger = logging.getLogger(__name__)


def build_prompt(type_code: Optional[str], category: Optional[str], registration: Optional[str]) -> str:
    subject = f"the {type_code} aircraft" if type_code else "this aircraft"
    if category:
        subject += f" ({category})"
    if registration:
        subject += f", registration {registration}"

    return (
        f"You are a knowledgeable aviation enthusiast. Give me 2-3 interesting facts about {subject}. "
        "Must include: approximate passenger capacity, year it first entered service, "
        "and what it is mostly used for. Be concise, 2-3 sentences maximum. "
        "Plain text only, no markdown, no bullet points."
    )


def extract_text(payload: dict) -> Optional[str]:
    blocks = payload.get("content") if isinstance(payload, dict) else None
    for block in blocks or []:
        text = (block or {}).get("text")
        if text and text.strip():
            return text.strip()
    return None


class FactsLookup:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        api_key: Optional[str],
        model: str,
        max_tokens: int = 200,
        enabled: bool = True,
        url: str = ANTHROPIC_MESSAGES_URL,
    ):
        self.session = session
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.enabled = enabled and bool(api_key)
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=LOOKUP_TIMEOUT_SECONDS)

    async def lookup_facts(
        self,
        type_code: Optional[str],
        category: Optional[str] = None,
        registration: Optional[str] = None,
    ) -> Optional[str]:
        """A few sentences about the aircraft, or None when disabled or nothing to ask about."""
        if not self.enabled:
            return None
        if not (type_code and type_code.strip()) and not (registration and registration.strip()):
            return None

        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [
                {"role": "user", "content": build_prompt(type_code, category, registration)}
            ],
        }
        async with self.session.post(self.url, headers=headers, json=payload, timeout=self.timeout) as response:
            response.raise_for_status()
            body = await response.json(content_type=None)

        text = extract_text(body)
        if text is None:
            logger.debug(f"{PROVIDER_ANTHROPIC} returned no text for {type_code or registration}")
        return text
