"""
OpenAI chat-completions provider.

Also serves OpenRouter, DeepSeek and any other OpenAI-compatible endpoint
through ``base_url``. Tool-call arguments are passed through as the raw JSON
blob in both directions.
"""

from typing import Any

import openai
import structlog

from .base import BaseLLM, LLMMessage, LLMResponse, ToolCall, ToolDefinition

logger = structlog.get_logger()


def _wire_tool_call(call: ToolCall) -> dict[str, Any]:
    return {
        "id": call.id,
        "type": "function",
        "function": {"name": call.name, "arguments": call.arguments or "{}"},
    }


def _wire_message(msg: LLMMessage) -> dict[str, Any]:
    if msg.role == "tool":
        return {"role": "tool", "tool_call_id": msg.tool_call_id, "content": msg.content}
    if msg.role == "assistant" and msg.tool_calls:
        # content may be null next to tool calls
        return {
            "role": "assistant",
            "content": msg.content or None,
            "tool_calls": [_wire_tool_call(tc) for tc in msg.tool_calls],
        }
    return {"role": msg.role, "content": msg.content}


class OpenAILLM(BaseLLM):
    """OpenAI-compatible chat model."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o",
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        super().__init__(api_key, model, base_url, max_tokens, temperature)
        self.client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url)

    @property
    def provider_name(self) -> str:
        return "openai"

    def _convert_messages(self, messages: list[LLMMessage]) -> list[dict[str, Any]]:
        return [_wire_message(msg) for msg in messages]

    def _convert_tools(self, tools: list[ToolDefinition]) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": t.name,
                    "description": t.description,
                    "parameters": t.parameters,
                },
            }
            for t in tools
        ]

    def _to_response(self, completion: Any) -> LLMResponse:
        choice = completion.choices[0]
        reply = choice.message
        usage = completion.usage

        return LLMResponse(
            content=reply.content or "",
            tool_calls=[
                ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
                for tc in reply.tool_calls or []
            ],
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=completion.model,
            stop_reason=choice.finish_reason,
            raw_response=completion,
        )

    async def generate(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
    ) -> LLMResponse:
        """Run one chat completion."""
        request: dict[str, Any] = {
            "model": self.model,
            "messages": self._convert_messages(messages),
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }
        if tools:
            request["tools"] = self._convert_tools(tools)

        try:
            completion = await self.client.chat.completions.create(**request)
        except openai.APIError as e:
            logger.error("OpenAI API error", model=self.model, error=str(e))
            raise

        return self._to_response(completion)
