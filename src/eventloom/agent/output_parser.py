"""Parser for the ReAct text protocol.

The model's reply is treated as an unreliable wire format. Two frames are
recognized::

    Thought: <thought>
    Action: <tool name>
    Action Input: <json object>

    Thought: <thought>
    Answer: <answer>

Keywords are case-sensitive and must start a line. When both ``Action:`` and
``Answer:`` are present, whichever appears first decides the frame.

The action name ends at the first whitespace or parenthesis, so a tool called
``get weather`` is read as ``get``. Tool names should be identifiers.
"""

from __future__ import annotations

import json
import re
from typing import Any

from eventloom.agent.errors import OutputParseError
from eventloom.agent.types import ActionReasoningStep, ReasoningStep, ResponseReasoningStep

IMPLICIT_THOUGHT = "(Implicit) I can answer without any more tools!"

_THOUGHT_RE = re.compile(r"^[ \t]*Thought:", re.MULTILINE)
_ACTION_RE = re.compile(r"^[ \t]*Action:", re.MULTILINE)
_ANSWER_RE = re.compile(r"^[ \t]*Answer:", re.MULTILINE)

_TOOL_USE_RE = re.compile(
    r"(?:\s*Thought:\s*(.*?)|(.+?))\n+Action:\s*([^\n()\s]+).*?\n+Action Input:\s*(.*)",
    re.DOTALL,
)
_FINAL_RESPONSE_RE = re.compile(r"\s*Thought:(.*?)Answer:(.*)", re.DOTALL)
_CODE_BLOCK_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_JSON_OBJECT_RE = re.compile(r"(\{.*\})", re.DOTALL)
_KV_PAIR_RE = re.compile(r'"(\w+)":\s*"([^"]*)"')


def extract_tool_use(text: str) -> tuple[str, str, str]:
    """Return ``(thought, action, action_input)`` from a tool-call frame."""

    m = _TOOL_USE_RE.search(text)
    if m is None:
        raise OutputParseError(f"could not extract tool use from input text: {text}", text)
    thought = (m.group(1) if m.group(1) else m.group(2) or "").strip()
    return thought, m.group(3).strip(), m.group(4).strip()


def extract_final_response(text: str) -> tuple[str, str]:
    """Return ``(thought, answer)`` from an answer frame."""

    m = _FINAL_RESPONSE_RE.search(text)
    if m is None:
        raise OutputParseError(f"could not extract final answer from input text: {text}", text)
    return m.group(1).strip(), m.group(2).strip()


def extract_json_str(text: str) -> str:
    """Pull the JSON object out of an action input, fenced or bare."""

    text = text.strip()
    m = _CODE_BLOCK_JSON_RE.search(text)
    if m:
        return m.group(1)
    m = _JSON_OBJECT_RE.search(text)
    if m:
        return m.group(1)
    return text


def _loads_object(text: str) -> dict[str, Any] | None:
    try:
        data = json.loads(text)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def parse_action_input(text: str) -> dict[str, Any]:
    """Decode an action input leniently.

    Tries strict JSON, then JSON with single quotes swapped for double quotes,
    then a scan for ``"key": "value"`` pairs. The quote swap corrupts values
    containing apostrophes; it is kept because models commonly emit
    Python-style dicts.
    """

    if text in ("", "{}"):
        return {}

    data = _loads_object(text)
    if data is not None:
        return data

    data = _loads_object(text.replace("'", '"'))
    if data is not None:
        return data

    pairs = {key: value for key, value in _KV_PAIR_RE.findall(text)}
    if not pairs:
        raise OutputParseError("could not parse action input", text)
    return pairs


class ReActOutputParser:
    """Turns a model reply into a reasoning step.

    Args:
        implicit_answer: When True, a reply with none of the ``Thought:``,
            ``Action:`` or ``Answer:`` keywords is taken as the final answer.
            When False such a reply is a parse error, which sends the model a
            format reminder instead.
    """

    def __init__(self, implicit_answer: bool = True) -> None:
        self.implicit_answer = implicit_answer

    def parse(self, output: str, is_streaming: bool = False) -> ReasoningStep:
        thought_m = _THOUGHT_RE.search(output)
        action_m = _ACTION_RE.search(output)
        answer_m = _ANSWER_RE.search(output)

        if thought_m is None and action_m is None and answer_m is None:
            if self.implicit_answer:
                return ResponseReasoningStep(
                    thought=IMPLICIT_THOUGHT,
                    response=output.strip(),
                    is_streaming=is_streaming,
                )
            raise OutputParseError(f"could not parse output: {output}", output)

        if action_m is not None and (answer_m is None or action_m.start() < answer_m.start()):
            return self._parse_action(output)

        if answer_m is not None:
            thought, answer = extract_final_response(output)
            return ResponseReasoningStep(thought=thought, response=answer, is_streaming=is_streaming)

        raise OutputParseError(f"could not parse output: {output}", output)

    @staticmethod
    def _parse_action(output: str) -> ActionReasoningStep:
        thought, action, action_input = extract_tool_use(output)
        try:
            kwargs = parse_action_input(extract_json_str(action_input))
        except OutputParseError as exc:
            raise OutputParseError(f"failed to parse action input: {exc}", output) from exc
        return ActionReasoningStep(thought=thought, action=action, action_input=kwargs)
