"""Ollama completion client, prompt construction, and reply parsing."""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta

import httpx

from taskchat.models import AssistantReply

logger = logging.getLogger(__name__)

TAG_CHOICES = ("work", "personal", "family", "health", "other")

_DECODER = json.JSONDecoder()


class CompletionError(RuntimeError):
    """The completion endpoint could not be reached or answered badly."""


class ReplyParseError(ValueError):
    """The model's reply could not be read as a JSON action object."""


def build_prompt(tools_info: str, context: str, user_message: str, today: date) -> str:
    """Assemble the full prompt sent to the model for one user message."""
    tomorrow = (today + timedelta(days=1)).isoformat()
    system = f"""\
You are a helpful task scheduling assistant with access to a task management system.

Available tools:
{tools_info}

CONVERSATION CONTEXT:
{context}

When the user asks you to do something, analyze their request and respond with a JSON object containing:
1. "action": The tool name to use (or "ask_clarification" if information is missing)
2. "parameters": The parameters to pass to the tool (or empty object if asking for clarification)
3. "explanation": A brief explanation of what you're doing
4. "missing_info": Array of missing information needed (only if action is "ask_clarification")
5. "validation_summary": A clear summary of what will be executed for user confirmation

For dates and times:
- Today is {today.isoformat()}. Use this as reference for any date calculations.
- Convert natural language like "tomorrow at 2pm" to ISO format
- If no time is specified, use 9am as default
- If no end time is specified, add 1 hour to start time

For tags, choose from: {", ".join(TAG_CHOICES)}
Infer appropriate tags from context.

If the request is vague or missing critical information, use "ask_clarification" action.

Use the conversation history to understand references like "the meeting I mentioned", "that task", etc.

IMPORTANT: Respond ONLY with a valid JSON object, no other text.

Examples:
User: "Schedule a meeting"
Response: {{"action": "ask_clarification", "parameters": {{}}, "explanation": "I need more details to schedule your meeting", "missing_info": ["meeting title/topic", "date and time", "duration or end time"], "validation_summary": ""}}

User: "Schedule a team meeting tomorrow at 3pm"
Response: {{"action": "create_task", "parameters": {{"title": "Team meeting", "start": "{tomorrow}T15:00:00", "end": "{tomorrow}T16:00:00", "tags": ["work"]}}, "explanation": "Creating a work meeting for tomorrow at 3pm", "validation_summary": "Create 'Team meeting' tomorrow from 3:00 PM to 4:00 PM with work tag"}}

User: "Show me my tasks"
Response: {{"action": "list_tasks", "parameters": {{}}, "explanation": "Listing all your tasks", "validation_summary": "Display all your current tasks"}}"""
    return f"{system}\n\nUser: {user_message}\nResponse:"


def parse_reply(text: str) -> AssistantReply:
    """Parse the model's reply, tolerating chatter around the JSON object."""
    if not isinstance(text, str):
        raise ReplyParseError(f"Could not parse LLM response as JSON: got {type(text).__name__}")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        if start < 0:
            raise ReplyParseError("Could not parse LLM response as JSON") from None
        # First balanced object only; anything after it is ignored
        try:
            data, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError as e:
            raise ReplyParseError(f"Could not parse LLM response as JSON: {e}") from None

    try:
        return AssistantReply.from_dict(data)
    except ValueError as e:
        raise ReplyParseError(f"Unusable LLM response: {e}") from None


class OllamaClient:
    """Minimal client for Ollama's non-streaming generate endpoint."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama2",
        temperature: float = 0.1,
        timeout: float = 30.0,
        client: httpx.Client | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self._client = client or httpx.Client(timeout=timeout)

    def is_available(self) -> bool:
        try:
            resp = self._client.get(f"{self.base_url}/api/tags")
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Ollama not reachable at %s: %s", self.base_url, e)
            return False
        return True

    def generate(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": self.temperature},
        }
        try:
            resp = self._client.post(f"{self.base_url}/api/generate", json=payload)
            resp.raise_for_status()
            text = resp.json()["response"]
            if not isinstance(text, str):
                raise TypeError(f"response is {type(text).__name__}, not a string")
        except httpx.HTTPError as e:
            logger.error("Ollama request failed: %s", e)
            raise CompletionError(f"Ollama request failed: {e}") from e
        except (ValueError, KeyError, TypeError) as e:
            raise CompletionError(f"Unexpected Ollama response: {e}") from e

        logger.debug("LLM response: %s", text)
        return text

    def close(self) -> None:
        self._client.close()
