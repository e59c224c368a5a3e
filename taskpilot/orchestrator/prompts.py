"""Prompts for the analyze / execute / synthesize pipeline.

Each renderer returns a prompt string. Sections that have nothing to show
render as an empty string and are dropped.
"""

from typing import List, Optional, Sequence, Tuple


ANALYSIS_INSTRUCTIONS = """\
You are an AI assistant that determines which tools are needed to answer a user's request.
Analyze the request and determine:
1. What specific tasks need to be performed
2. Which tools would be helpful (code execution, data analysis, web search, etc.)
3. What types of models would be best suited (reasoning-focused, code-focused, etc.)

Task types:
- reasoning: explanation, planning, general knowledge, writing
- code: writing or running code, calculations
- data: looking up facts, analyzing tables, spreadsheets, figures
- visual: images, charts, diagrams

Priority is 1 (lowest) to 5 (highest). Higher-priority tasks run first.

Respond with strict JSON only, in this shape:
{
  "tasks": [
    {"description": "task description", "type": "reasoning|code|data|visual", "priority": 1-5}
  ],
  "suggestedTools": ["tool1", "tool2"],
  "modelTypes": ["model-type1", "model-type2"]
}"""


def _join_sections(sections: Sequence[str]) -> str:
    return "\n\n".join(s for s in sections if s)


def render_available_tools(tool_names: Sequence[str]) -> str:
    if not tool_names:
        return ""
    return "Available tools: " + ", ".join(tool_names)


def render_context(context: str) -> str:
    if not context:
        return ""
    return f"Conversation context:\n{context}"


def render_analysis_prompt(
    request: str,
    context: str = "",
    tool_names: Sequence[str] = (),
) -> str:
    return _join_sections([
        ANALYSIS_INSTRUCTIONS,
        render_available_tools(tool_names),
        render_context(context),
        f"User's request: {request}",
    ])


def render_step_prompt(
    task_description: str,
    request: str,
    dependency_outputs: str = "",
    context: str = "",
) -> str:
    previous = f"Information from previous steps:\n{dependency_outputs}" if dependency_outputs else ""
    return _join_sections([
        f"You are an AI assistant working on the following task: {task_description}",
        f"Original user request: {request}",
        render_context(context),
        previous,
        f"Please complete the following task: {task_description}\n"
        "Be thorough and accurate. Your output will be used in subsequent steps.",
    ])


SYNTHESIS_INSTRUCTIONS = (
    "Synthesize all this information into a coherent, helpful response that directly "
    "addresses the user's original request.\n"
    "Make sure your response is well-structured and easy to understand."
)


def render_synthesis_prompt(
    request: str,
    reasoning: Sequence[str],
    step_outputs: Sequence[Tuple[str, str]],
    tool_outputs: Sequence[Tuple[str, str]],
    limit: Optional[int] = None,
) -> str:
    """Render the synthesis prompt.

    *limit* is met by cutting the step and tool output sections only; the
    request, the trace and the closing instructions are always kept whole.
    """
    steps_text = "\n\n".join(f"Task: {task}\nOutput: {output}" for task, output in step_outputs)
    tools_text = "\n\n".join(f"Tool: {name}\nOutput: {output}" for name, output in tool_outputs)
    head = [
        "You are an AI assistant tasked with providing a helpful, coherent response to a user.",
        f"Original request: {request}",
        "The following steps were taken to answer this request:\n" + "\n".join(reasoning)
        if reasoning else "",
    ]
    outputs = _join_sections([
        f"Step outputs:\n{steps_text}" if steps_text else "",
        f"Tool outputs:\n{tools_text}" if tools_text else "",
    ])
    if limit is not None:
        fixed = len(_join_sections(head + [SYNTHESIS_INSTRUCTIONS])) + len("\n\n")
        outputs = truncate(outputs, max(0, limit - fixed))
    return _join_sections(head + [outputs, SYNTHESIS_INSTRUCTIONS])


def truncate(text: str, limit: Optional[int]) -> str:
    """Cut *text* to *limit* characters, marking the cut."""
    if limit is None or len(text) <= limit:
        return text
    marker = "\n[truncated]"
    if limit <= len(marker):
        return text[:limit]
    return text[: limit - len(marker)] + marker


def join_blocks(blocks: List[str], limit: Optional[int]) -> str:
    return truncate("\n\n".join(b for b in blocks if b), limit)
