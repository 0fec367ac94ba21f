"""LLM call surface: one operation, ``complete(system, user) -> dict``.

Anything with that method can drive the pipeline; tests pass a canned fake.
"""

import json
import logging

import anthropic
from anthropic import Anthropic

from . import config
from .errors import ContractViolation, ExternalCallFailure
from .prompts import JSON_ONLY_SUFFIX

logger = logging.getLogger("eigen.llm")


def parse_json_reply(raw: str) -> dict:
    """Decode a JSON object from model text, tolerating a markdown code fence.

    Raises:
        ContractViolation: text is empty, not JSON, or not a JSON object.
    """
    text = (raw or "").strip()
    # Handle potential markdown code fence
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        text = text.rsplit("```", 1)[0].strip()
    if not text:
        raise ContractViolation("Model returned an empty reply")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ContractViolation(f"Model reply is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise ContractViolation("Model reply is not a JSON object")
    return payload


class AnthropicLanguageModel:
    """Synchronous JSON completions against the Anthropic Messages API."""

    def __init__(
        self,
        client: Anthropic | None = None,
        model: str = config.MODEL_NAME,
        temperature: float = config.TEMPERATURE,
        max_tokens: int = config.MAX_TOKENS,
        timeout: float = config.LLM_TIMEOUT_SECONDS,
    ):
        # No SDK-level retries: a failed call surfaces to the user, who resubmits
        self.client = client or Anthropic(timeout=timeout, max_retries=0)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @classmethod
    def from_config(cls, diagnostic_config, client: Anthropic | None = None) -> "AnthropicLanguageModel":
        return cls(
            client=client,
            model=diagnostic_config.model,
            temperature=diagnostic_config.temperature,
            max_tokens=diagnostic_config.max_tokens,
        )

    def complete(self, system: str, user: str) -> dict:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=f"{system}\n\n{JSON_ONLY_SUFFIX}",
                messages=[{"role": "user", "content": user}],
            )
        except anthropic.APIError as exc:
            logger.error("LLM call failed: %s", exc)
            raise ExternalCallFailure(f"LLM call failed: {exc}") from exc

        logger.debug(
            "API usage - input_tokens: %d, output_tokens: %d, stop_reason: %s",
            response.usage.input_tokens, response.usage.output_tokens, response.stop_reason,
        )

        raw = "".join(block.text for block in response.content if block.type == "text")
        return parse_json_reply(raw)
