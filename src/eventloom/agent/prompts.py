"""Prompt templates for the ReAct agent.

Templates use ``{name}`` placeholders substituted with plain string
replacement, since the text itself contains JSON braces.
"""

from __future__ import annotations

_TOOLS_SECTION = """You are designed to help with a variety of tasks, from answering questions to providing summaries to other types of analyses.

## Tools

You have access to a wide variety of tools. You are responsible for using the tools in any sequence you deem appropriate to complete the task at hand.
This may require breaking the task into subtasks and using different tools to complete each subtask.

You have access to the following tools:
{tool_desc}
"""

_FORMAT_SECTION = """
## Output Format

Please answer in the same language as the question and use the following format:

```
Thought: The current language of the user is: (user's language). I need to use a tool to help me answer the question.
Action: tool name (one of {tool_names}) if using a tool.
Action Input: the input to the tool, in a JSON format representing the kwargs (e.g. {"input": "hello world", "num_beams": 5})
```

Please ALWAYS start with a Thought.

NEVER surround your response with markdown code markers. You may use code markers within your response if you need to.

Please use a valid JSON format for the Action Input. Do NOT do this {'input': 'hello world', 'num_beams': 5}. If you include the "Action:" line, then you MUST include the "Action Input:" line too, even if the tool does not need kwargs, in that case you MUST use "Action Input: {}".

If this format is used, the tool will respond in the following format:

```
Observation: tool response
```

You should keep repeating the above format till you have enough information to answer the question without using any more tools. At that point, you MUST respond in one of the following two formats:

```
Thought: I can answer without using any more tools. I'll use the user's language to answer
Answer: [your answer here (In the same language as the user's question)]
```

```
Thought: I cannot answer the question with the provided tools.
Answer: [your answer here (In the same language as the user's question)]
```

## Current Conversation

Below is the current conversation consisting of interleaving human and assistant messages.
"""

REACT_SYSTEM_HEADER = _TOOLS_SECTION + "{context_prompt}\n" + _FORMAT_SECTION

CONTEXT_REACT_SYSTEM_HEADER = (
    _TOOLS_SECTION
    + "\nHere is some context to help you answer the question and plan:\n{context}\n"
    + _FORMAT_SECTION
)

CONTEXT_PROMPT = "\nHere is some context to help you answer the question and plan:\n{context}\n"

TOOL_DESCRIPTION = "> Tool Name: {name}\nTool Description: {description}\nTool Args: {args}\n"

PARSE_RECOVERY_MESSAGE = (
    "Error while parsing the output: {error}\n\n"
    "The output should be in one of the following formats:\n"
    "1. To call a tool:\n"
    "```\n"
    "Thought: <thought>\n"
    "Action: <action>\n"
    "Action Input: <action_input>\n"
    "```\n"
    "2. To answer the question:\n"
    "```\n"
    "Thought: <thought>\n"
    "Answer: <answer>\n"
    "```\n"
)


def fill(template: str, **values: str) -> str:
    """Replace ``{key}`` placeholders, leaving other braces alone."""

    out = template
    for key, value in values.items():
        out = out.replace("{" + key + "}", value)
    return out
