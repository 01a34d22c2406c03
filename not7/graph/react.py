"""
ReAct Loop - bounded iterative reasoning with optional tool calls.

Each iteration asks the backend to think; the response is scanned for a
single tool call using the textual protocol below, the tool result is
folded back into the running context, and the loop stops as soon as a
response starts with ``FINAL:``.

Tool-call protocol::

    TOOL_CALL: WebSearch
    {
      "query": "latest python release",
      "num_results": 3
    }
"""

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass

from not7.errors import ReActIterationError
from not7.graph.spec import LLMConfig, Node, ReActTrace, ThinkingStep, ToolCallTrace
from not7.llm.provider import LLMProvider
from not7.tools.manager import ToolManager
from not7.tools.types import ToolCall, format_tool_output

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 5
TOOL_TIMEOUT = 30.0
TOOL_RESULT_PREVIEW_CHARS = 500
FINAL_MARKER = "FINAL:"

_TOOL_CALL_RE = re.compile(r"^TOOL_CALL:\s*(\S+)\s*$", re.MULTILINE)
_json_decoder = json.JSONDecoder()

DEFAULT_THINKING_GUIDANCE = """Process:
1. THINK: What do you currently know? What's missing?
2. REASON: What should you explore next?
3. ANSWER: Based on your thinking, what's your current best answer?
4. CRITIQUE: Is your answer complete and accurate? What could be improved?

If your answer is satisfactory and complete, start your response with "FINAL:" followed by your final answer.
If you need more thinking, start with "CONTINUE:" and continue reasoning."""

DEFAULT_TOOL_THINKING_GUIDANCE = """Process:
1. THINK: What do you currently know? What's missing? What tools can help?
2. ACT: Call tools to gather information using the TOOL_CALL format
3. OBSERVE: Review tool results and integrate them into your understanding
4. REASON: Based on your thinking and tool results, what's your current best answer?
5. CRITIQUE: Is your answer complete and accurate? Do you need more information?

To call a tool, use this exact format:
TOOL_CALL: tool_name
{
  "argument1": "value1",
  "argument2": "value2"
}

If your answer is satisfactory and complete, start your response with "FINAL:" followed by your final answer.
If you need more thinking or tool calls, continue reasoning."""

CONTINUE_INSTRUCTION = (
    "Continue your reasoning. Critique your previous thoughts and refine your answer. "
    "If you have a complete answer, start with 'FINAL:'"
)
CONTINUE_WITH_TOOLS_INSTRUCTION = (
    "Continue your reasoning. You can:\n"
    "1. Call a tool using TOOL_CALL: tool_name format\n"
    "2. Finish with FINAL: your_answer"
)


@dataclass
class ReActOutcome:
    """What a ReAct run produced."""

    answer: str
    cost: float
    trace: ReActTrace


def parse_tool_call(response: str) -> ToolCall | None:
    """
    Extract the first tool call from a model response.

    The tool name comes from a line of the form ``TOOL_CALL: <name>``. The
    first ``{`` after that line starts the JSON arguments; a missing or
    malformed object yields empty arguments rather than no call.
    """
    match = _TOOL_CALL_RE.search(response)
    if match is None:
        return None

    tool_name = match.group(1).strip()
    rest = response[match.end() :]
    brace = rest.find("{")
    if brace == -1:
        return ToolCall(tool_name=tool_name)

    try:
        arguments, _ = _json_decoder.raw_decode(rest, brace)
    except json.JSONDecodeError:
        logger.debug(f"Ignoring malformed arguments for tool call {tool_name}")
        return ToolCall(tool_name=tool_name)

    if not isinstance(arguments, dict):
        return ToolCall(tool_name=tool_name)
    return ToolCall(tool_name=tool_name, arguments=arguments)


def build_system_prompt(goal: str, thinking_prompt: str = "", tool_context: str | None = None) -> str:
    """System prompt for a ReAct run; ``tool_context`` switches to the tools variant."""
    if tool_context is None:
        guidance = thinking_prompt or DEFAULT_THINKING_GUIDANCE
        return (
            "You are a research and reasoning assistant.\n\n"
            f"Your goal: {goal}\n\n"
            f"{guidance}\n\n"
            "Iterate and refine your thinking until you have a complete, accurate answer."
        )

    guidance = thinking_prompt or DEFAULT_TOOL_THINKING_GUIDANCE
    return (
        "You are a research and reasoning assistant with access to tools.\n\n"
        f"Your goal: {goal}\n\n"
        f"{tool_context}\n\n"
        f"{guidance}\n\n"
        "Iterate and refine your thinking until you have a complete, accurate answer."
    )


def build_first_prompt(goal: str, input_data: str, with_tools: bool) -> str:
    prompt = f"Goal: {goal}"
    if input_data and input_data != goal:
        prompt += f"\n\nInput:\n{input_data}"
    if with_tools:
        return (
            prompt
            + "\n\nYou have access to tools. Use them to help achieve the goal."
            + "\n\nBegin your reasoning."
        )
    return prompt + "\n\nBegin your reasoning. Think step by step."


def _preview(text: str, limit: int = 80) -> str:
    lines = text.strip().splitlines()
    first = lines[0].strip() if lines else ""
    if len(first) > limit:
        return first[: limit - 3] + "..."
    return first


class ReActLoop:
    """
    Runs one ReAct node.

    Example:
        loop = ReActLoop(llm, LLMConfig(model="gpt-4", temperature=0.7), tool_manager)
        outcome = await loop.run(node, "What changed in Python 3.13?")
        print(outcome.answer, outcome.cost, outcome.trace.iterations)
    """

    def __init__(
        self,
        llm: LLMProvider,
        llm_config: LLMConfig,
        tool_manager: ToolManager | None = None,
        tool_timeout: float = TOOL_TIMEOUT,
        preview_chars: int = TOOL_RESULT_PREVIEW_CHARS,
    ):
        self.llm = llm
        self.llm_config = llm_config
        self.tool_manager = tool_manager
        self.tool_timeout = tool_timeout
        self.preview_chars = preview_chars

    @property
    def has_tools(self) -> bool:
        return self.tool_manager is not None and self.tool_manager.has_tools()

    async def run(self, node: Node, input_data: str = "") -> ReActOutcome:
        """
        Iterate until a ``FINAL:`` answer or ``max_iterations``.

        Raises:
            ReActIterationError: a backend call failed; carries the trace
                and cost accumulated before the failure
        """
        max_iterations = node.max_iterations or DEFAULT_MAX_ITERATIONS
        goal = node.react_goal or input_data
        with_tools = self.has_tools
        tool_context = self.tool_manager.get_tool_context() if with_tools else None
        system_prompt = build_system_prompt(goal, node.thinking_prompt, tool_context)
        continue_instruction = CONTINUE_WITH_TOOLS_INSTRUCTION if with_tools else CONTINUE_INSTRUCTION

        trace = ReActTrace()
        total_cost = 0.0
        answer = ""
        context = ""
        start = time.monotonic()

        logger.info(
            f"🧠 ReAct goal: {goal} (max iterations: {max_iterations}, "
            f"tools: {len(self.tool_manager.list_tools()) if with_tools else 0})"
        )

        try:
            for i in range(1, max_iterations + 1):
                iter_start = time.monotonic()
                logger.info(f"💭 Iteration {i}/{max_iterations}")

                if i == 1:
                    prompt = build_first_prompt(goal, input_data, with_tools)
                else:
                    prompt = f"{context}\n\n{continue_instruction}"

                try:
                    response = await self.llm.complete(system_prompt, prompt, self.llm_config)
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    logger.error(f"ReAct iteration {i} failed: {e}")
                    raise ReActIterationError(i, e, trace=trace, cost=total_cost) from e

                total_cost += response.cost
                text = response.content
                step = ThinkingStep(
                    iteration=i,
                    thought=text,
                    duration_ms=int((time.monotonic() - iter_start) * 1000),
                    cost=response.cost,
                )

                call = parse_tool_call(text) if with_tools else None
                if call is not None:
                    tool_trace, folded = await self._run_tool(call)
                    step.tool_calls.append(tool_trace)
                    context += folded
                else:
                    context += f"\n\n{text}"

                trace.thinking_steps.append(step)
                logger.info(f"   {_preview(text)} ({step.duration_ms}ms, ${response.cost:.4f})")

                stripped = text.strip()
                if stripped.startswith(FINAL_MARKER):
                    answer = stripped[len(FINAL_MARKER) :].strip()
                    logger.info(f"✓ ReAct reached conclusion at iteration {i}")
                    break

                answer = text
        finally:
            trace.iterations = len(trace.thinking_steps)
            trace.total_thinking_time_ms = int((time.monotonic() - start) * 1000)
            trace.iterations_cost = total_cost

        logger.info(
            f"ReAct complete: {trace.iterations} iterations, "
            f"{trace.total_thinking_time_ms}ms total, ${total_cost:.4f} cost"
        )
        return ReActOutcome(answer=answer, cost=total_cost, trace=trace)

    async def _run_tool(self, call: ToolCall) -> tuple[ToolCallTrace, str]:
        """Execute a parsed tool call; returns its trace and the text to fold into context."""
        logger.info(f"🔧 Calling tool: {call.tool_name}")
        tool_start = time.monotonic()
        tool_trace = ToolCallTrace(tool_name=call.tool_name, arguments=call.arguments)

        error = ""
        try:
            result = await asyncio.wait_for(
                self.tool_manager.execute_tool(call.tool_name, call.arguments),
                timeout=self.tool_timeout,
            )
        except TimeoutError:
            error = f"tool call timed out after {self.tool_timeout:g}s"
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = str(e)
        else:
            if result.success:
                tool_trace.result = result.output
            else:
                error = result.error or "tool returned no output"

        tool_trace.duration_ms = int((time.monotonic() - tool_start) * 1000)

        if error:
            tool_trace.error = error
            logger.error(f"✗ Tool {call.tool_name} failed: {error}")
            return tool_trace, f"\n\nTOOL_RESULT ({call.tool_name}): ERROR - {error}"

        logger.info(f"✓ Tool {call.tool_name} completed in {tool_trace.duration_ms}ms")
        text = format_tool_output(tool_trace.result)
        if len(text) > self.preview_chars:
            text = text[: self.preview_chars] + "... (truncated)"
        return tool_trace, f"\n\nTOOL_RESULT ({call.tool_name}):\n{text}"
