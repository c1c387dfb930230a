"""Unit tests for bot verification challenges and reply parsing."""

import json

import httpx
import pytest

from xdrop.bots.challenges import (
    CHALLENGES,
    EndpointError,
    arithmetic_challenge,
    ask_endpoint,
    extract_json_text,
    parse_sse_text,
    reply_contains_number,
)

BY_NAME = {c.name: c for c in CHALLENGES}


class TestValidators:
    def test_multiplication(self):
        check = BY_NAME["multiplication"].validate
        assert check("19481")
        assert check("The answer is 19,481")
        assert not check("19480")
        assert not check("no idea")

    def test_json_shape(self):
        check = BY_NAME["json"].validate
        assert check('```json\n{"name": "x", "version": 1.2, "features": ["a", "b"]}\n```')
        assert not check('{"name": "x", "version": "1", "features": ["a", "b"]}')
        assert not check('{"name": "x", "version": 1, "features": ["a"]}')
        assert not check("not json")

    def test_recursion(self):
        check = BY_NAME["recursion"].validate
        good = (
            "Recursion lets a function solve a problem by calling itself. "
            "With recursion, tree structures become natural to traverse. "
            "Recursion often yields shorter and clearer code."
        )
        assert check(good)
        assert not check("Loops are fine.")


class TestArithmetic:
    def test_prompt_contains_operands(self):
        prompt, answer = arithmetic_challenge()
        a, b = (int(n) for n in prompt.split("What is ")[1].split("?")[0].split(" + "))
        assert a + b == answer

    def test_reply_contains_number(self):
        assert reply_contains_number("It is 42.", 42)
        assert not reply_contains_number("It is 421.", 42)


class TestReplyExtraction:
    def test_sse_openai_and_anthropic(self):
        body = "\n".join(
            [
                'data: {"choices": [{"delta": {"content": "19"}}]}',
                'data: {"delta": {"text": "481"}}',
                "data: not-json",
                "data: [DONE]",
            ]
        )
        assert parse_sse_text(body) == "19481"

    def test_sse_skips_malformed_choices(self):
        body = "\n".join(
            [
                'data: {"choices": ["x"]}',
                'data: {"choices": {"0": {"delta": {"content": "no"}}}}',
                'data: {"choices": [{"delta": "raw"}]}',
                'data: {"choices": [{"delta": {"content": 7}}]}',
                'data: {"choices": [{"delta": {"content": "ok"}}]}',
            ]
        )
        assert parse_sse_text(body) == "ok"

    def test_json_skips_malformed_choices(self):
        assert extract_json_text({"choices": ["x"]}, fallback_dump=False) == ""
        assert extract_json_text({"choices": {"0": {"text": "no"}}}, fallback_dump=False) == ""

    def test_json_shapes(self):
        assert extract_json_text({"content": "a"}, fallback_dump=False) == "a"
        assert extract_json_text({"response": "b"}, fallback_dump=False) == "b"
        assert extract_json_text({"choices": [{"message": {"content": "c"}}]}, fallback_dump=False) == "c"
        assert extract_json_text({"choices": [{"text": "d"}]}, fallback_dump=False) == "d"
        assert extract_json_text("plain", fallback_dump=False) == "plain"

    def test_unknown_shape_fallback(self):
        assert extract_json_text({"x": 1}, fallback_dump=False) == ""
        assert json.loads(extract_json_text({"x": 1}, fallback_dump=True)) == {"x": 1}


class TestAskEndpoint:
    async def test_posts_messages_and_reads_json(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"text": "hello"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            reply = await ask_endpoint(http, "https://bot.test/chat", "hi", timeout=1.0)
        assert reply == "hello"
        assert seen["body"] == {"messages": [{"role": "user", "content": "hi"}]}

    async def test_error_status(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(500, text="boom"))
        async with httpx.AsyncClient(transport=transport) as http:
            with pytest.raises(EndpointError, match="500"):
                await ask_endpoint(http, "https://bot.test/chat", "hi", timeout=1.0)

    async def test_timeout_propagates(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(httpx.TimeoutException):
                await ask_endpoint(http, "https://bot.test/chat", "hi", timeout=1.0)
