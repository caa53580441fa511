"""Claude-backed interpreter base.

An interpreter turns a typed input into a prompt, sends it through the
Anthropic Messages API in one non-streaming call, and parses the reply into
a typed output. Prompt wording and parsing live in subclasses; the client,
model selection and reply extraction live here.
"""

import logging
from abc import ABC, abstractmethod
from typing import Generic, TypeVar

import anthropic

logger = logging.getLogger(__name__)

TInput = TypeVar("TInput")
TOutput = TypeVar("TOutput")

DEFAULT_MODEL = "claude-sonnet-4-20250514"


def reply_text(message: anthropic.types.Message) -> str:
    """Concatenate the text blocks of a Messages API reply."""
    parts = [block.text for block in message.content if getattr(block, "text", None)]
    return "".join(parts)


class BaseInterpreter(ABC, Generic[TInput, TOutput]):
    """Typed prompt in, typed result out, with one Claude call in between."""

    max_tokens: int = 1024
    temperature: float = 0.7

    def __init__(self, api_key: str, model: str = DEFAULT_MODEL):
        self.api_key = api_key
        self.model = model
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        # Created on first use so a missing key never builds a client
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    @abstractmethod
    def get_system_prompt(self, input_data: TInput) -> str: ...

    @abstractmethod
    def format_input(self, input_data: TInput) -> str:
        """Render the user turn for ``input_data``."""
        ...

    @abstractmethod
    def parse_output(self, response_text: str) -> TOutput:
        """Turn the model's text reply into the typed result."""
        ...

    async def interpret(self, input_data: TInput) -> TOutput:
        """
        Send one request and parse the reply.

        Raises:
            anthropic.APIError: On transport, auth or quota failures
        """
        message = await self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            system=self.get_system_prompt(input_data),
            messages=[{"role": "user", "content": self.format_input(input_data)}],
        )
        if message.stop_reason == "max_tokens":
            logger.warning(
                f"[interpreter] {type(self).__name__}: reply truncated at {self.max_tokens} tokens"
            )
        return self.parse_output(reply_text(message))
