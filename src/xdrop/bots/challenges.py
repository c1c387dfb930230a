"""AI-agent challenges sent to a bot's chat endpoint during verification.

A bot endpoint accepts `POST {"messages": [{"role": "user", "content": ...}]}`
and answers either with JSON (several common reply shapes) or with an SSE
stream of OpenAI/Anthropic-style deltas.
"""

from __future__ import annotations

import json
import random
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_CODE_FENCE_RE = re.compile(r"```json?\n?")
_NUMBER_RE = re.compile(r"\d+")
_NON_DIGIT_RE = re.compile(r"[^0-9]")


class EndpointError(Exception):
    """The bot endpoint answered with a non-2xx status or could not be reached."""


@dataclass(frozen=True)
class Challenge:
    name: str
    prompt: str
    validate: Callable[[str], bool]


def _validate_recursion(reply: str) -> bool:
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(reply) if len(s.strip()) > 10]
    mentions = sum(1 for s in sentences if "recursion" in s.lower())
    return 50 < len(reply) < 2000 and mentions >= 2


def _validate_json_shape(reply: str) -> bool:
    cleaned = _CODE_FENCE_RE.sub("", reply).replace("```", "").strip()
    try:
        obj = json.loads(cleaned)
    except ValueError:
        return False
    if not isinstance(obj, dict):
        return False
    features = obj.get("features")
    version = obj.get("version")
    return (
        isinstance(obj.get("name"), str)
        and isinstance(version, (int, float))
        and not isinstance(version, bool)
        and isinstance(features, list)
        and len(features) == 2
        and all(isinstance(f, str) for f in features)
    )


def _validate_multiplication(reply: str) -> bool:
    digits = _NON_DIGIT_RE.sub("", reply)
    return bool(digits) and int(digits) == 847 * 23


CHALLENGES: tuple[Challenge, ...] = (
    Challenge(
        name="recursion",
        prompt=(
            "Explain in exactly 3 sentences why recursion is useful in programming. "
            "Each sentence must contain the word 'recursion'."
        ),
        validate=_validate_recursion,
    ),
    Challenge(
        name="json",
        prompt=(
            "Generate a valid JSON object with exactly 3 keys: 'name' (string), 'version' (number), "
            "'features' (array of 2 strings). Respond with ONLY the JSON, no explanation."
        ),
        validate=_validate_json_shape,
    ),
    Challenge(
        name="multiplication",
        prompt="What is 847 * 23? Respond with ONLY the number, nothing else.",
        validate=_validate_multiplication,
    ),
)


def pick_challenge() -> Challenge:
    return random.choice(CHALLENGES)  # noqa: S311


def arithmetic_challenge() -> tuple[str, int]:
    """Quick addition used when registering bots in bulk. Returns (prompt, answer)."""
    a = random.randint(10, 59)  # noqa: S311
    b = random.randint(5, 24)  # noqa: S311
    return f"What is {a} + {b}? Reply with ONLY the number, nothing else.", a + b


def reply_contains_number(reply: str, expected: int) -> bool:
    return any(int(n) == expected for n in _NUMBER_RE.findall(reply))


# ---------------------------------------------------------------------------
# Reply extraction
# ---------------------------------------------------------------------------


def _first_choice(event: dict) -> dict:
    choices = event.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        return choices[0]
    return {}


def parse_sse_text(body: str) -> str:
    """Concatenate delta text from `data:` lines of an SSE body."""
    parts: list[str] = []
    for line in body.splitlines():
        if not line.startswith("data: "):
            continue
        payload = line[len("data: ") :].strip()
        if not payload or payload == "[DONE]":
            continue
        try:
            event = json.loads(payload)
        except ValueError:
            continue
        if not isinstance(event, dict):
            continue
        delta = _first_choice(event).get("delta")
        delta_content = delta.get("content") if isinstance(delta, dict) else None
        if isinstance(delta_content, str) and delta_content:
            parts.append(delta_content)
        elif isinstance(event.get("delta"), dict) and isinstance(event["delta"].get("text"), str):
            parts.append(event["delta"]["text"])
    return "".join(parts)


def extract_json_text(data: Any, *, fallback_dump: bool) -> str:  # noqa: ANN401
    """Pull the reply text out of the common JSON reply shapes."""
    if isinstance(data, str):
        return data
    if not isinstance(data, dict):
        return json.dumps(data) if fallback_dump else ""
    for key in ("content", "text", "response", "message"):
        value = data.get(key)
        if isinstance(value, str) and value:
            return value
    choice = _first_choice(data)
    message = choice.get("message") or {}
    if isinstance(message, dict) and message.get("content"):
        return str(message["content"])
    if choice.get("text"):
        return str(choice["text"])
    return json.dumps(data) if fallback_dump else ""


async def ask_endpoint(
    http: httpx.AsyncClient,
    endpoint: str,
    prompt: str,
    *,
    timeout: float,
    fallback_dump: bool = False,
) -> str:
    """
    Send one user message to a bot endpoint and return its reply text.

    Raises:
        httpx.TimeoutException: The endpoint did not answer within `timeout`.
        EndpointError: Non-2xx status, unreachable host, or unparseable body.
    """
    try:
        response = await http.post(
            endpoint,
            json={"messages": [{"role": "user", "content": prompt}]},
            timeout=timeout,
        )
    except httpx.TimeoutException:
        raise
    except httpx.HTTPError as e:
        raise EndpointError(f"Cannot reach bot endpoint: {e}") from e

    if response.is_error:
        raise EndpointError(f"Endpoint returned {response.status_code}: {response.text[:100]}")

    if "text/event-stream" in response.headers.get("content-type", ""):
        return parse_sse_text(response.text)
    try:
        data = response.json()
    except ValueError as e:
        raise EndpointError("Empty or unrecognized response format") from e
    return extract_json_text(data, fallback_dump=fallback_dump)
