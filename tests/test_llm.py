import json
from datetime import date

import httpx
import pytest

from taskchat.llm import CompletionError, OllamaClient, ReplyParseError, build_prompt, parse_reply


def test_parse_reply_plain_json():
    reply = parse_reply('{"action": "list_tasks", "parameters": {}, "explanation": "Listing"}')
    assert reply.action == "list_tasks"
    assert reply.explanation == "Listing"


def test_parse_reply_extracts_embedded_object():
    text = 'Sure! Here you go:\n{"action": "delete_task", "parameters": {"id": "abc"}}\nHope that helps.'
    reply = parse_reply(text)
    assert reply.action == "delete_task"
    assert reply.parameters == {"id": "abc"}


def test_parse_reply_without_json_fails():
    with pytest.raises(ReplyParseError):
        parse_reply("I can't help with that.")


def test_parse_reply_broken_embedded_json_fails():
    with pytest.raises(ReplyParseError):
        parse_reply("prefix {action: list_tasks} suffix")


def test_parse_reply_missing_action_fails():
    with pytest.raises(ReplyParseError):
        parse_reply('{"parameters": {}}')


def test_build_prompt_embeds_context_and_message():
    prompt = build_prompt(
        "- list_tasks: List all scheduled tasks.",
        "Recent conversation:\nuser: show tasks\n",
        "show tasks",
        date(2026, 3, 2),
    )
    assert "- list_tasks: List all scheduled tasks." in prompt
    assert "CONVERSATION CONTEXT:\nRecent conversation:\nuser: show tasks\n" in prompt
    assert "Today is 2026-03-02." in prompt
    # Example dates follow today rather than a fixed calendar day
    assert '"start": "2026-03-03T15:00:00"' in prompt
    assert "work, personal, family, health, other" in prompt
    assert prompt.endswith("\n\nUser: show tasks\nResponse:")


def _ollama(handler):
    return OllamaClient(
        "http://ollama.test/",
        model="mistral",
        temperature=0.2,
        client=httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_generate_posts_non_streaming_json_request():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": '{"action": "list_tasks"}'})

    text = _ollama(handler).generate("hello")

    assert text == '{"action": "list_tasks"}'
    assert seen["url"] == "http://ollama.test/api/generate"
    assert seen["body"] == {
        "model": "mistral",
        "prompt": "hello",
        "stream": False,
        "format": "json",
        "options": {"temperature": 0.2},
    }


def test_generate_http_error_raises_completion_error():
    client = _ollama(lambda request: httpx.Response(500, text="boom"))
    with pytest.raises(CompletionError):
        client.generate("hello")


def test_generate_unexpected_body_raises_completion_error():
    client = _ollama(lambda request: httpx.Response(200, json={"done": True}))
    with pytest.raises(CompletionError):
        client.generate("hello")


def test_is_available():
    up = _ollama(lambda request: httpx.Response(200, json={"models": []}))
    assert up.is_available()

    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    assert not _ollama(refuse).is_available()


def test_parse_reply_takes_first_balanced_object():
    text = 'Sure: {"action": "list_tasks", "parameters": {}} (use {braces} carefully)'
    reply = parse_reply(text)
    assert reply.action == "list_tasks"
    assert reply.parameters == {}


def test_parse_reply_ignores_second_object():
    text = '{"action": "delete_task", "parameters": {"id": "a"}}\n{"action": "list_tasks"}'
    assert parse_reply(text).action == "delete_task"


def test_parse_reply_braces_inside_strings():
    text = 'Here: {"action": "create_task", "explanation": "title is {weird}"} done'
    reply = parse_reply(text)
    assert reply.explanation == "title is {weird}"


def test_parse_reply_non_string_fails():
    with pytest.raises(ReplyParseError):
        parse_reply(None)


def test_generate_null_response_raises_completion_error():
    client = _ollama(lambda request: httpx.Response(200, json={"response": None}))
    with pytest.raises(CompletionError):
        client.generate("hello")
