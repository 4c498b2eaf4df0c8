"""Agent runner — the multi-turn tool-use loop.

One :meth:`AgentRunner.run` drives a single user turn::

    Start → BuildRequest → CallModel ─┬─ tool_use   → ExecuteTools → BuildRequest
                                      ├─ end_turn   → Done(success)
                                      ├─ max_tokens → Done(success, truncated)
                                      └─ error      → Done(failure)

Phases are sequential: the next model call waits for every tool of the
previous turn. Tools requested in one turn run concurrently, bounded by
``AgentContext.max_parallel_tools``, and their results are matched back
by tool call id.

A run is bounded by ``max_iterations`` tool-use rounds and, optionally, a
wall-clock ``time_budget``. Setting ``cancel_event`` aborts the in-flight
phase and ends the run with ``status=CANCELLED``. Tool failures never end
a run; they are handed back to the model as error results.
"""

from __future__ import annotations

import asyncio
import contextlib
import enum
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypeVar

from agentloop.llm.base import LlmRequest, LlmResponse, Message, StopReason, TokenUsage
from agentloop.tools.base import ToolResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Sequence

    from agentloop.agent.context import AgentContext
    from agentloop.config.schema import AgentLoopConfig
    from agentloop.llm.base import LlmClient
    from agentloop.tools.base import ToolCall

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RunStatus(enum.StrEnum):
    """How a run ended."""

    COMPLETED = "completed"
    TRUNCATED = "truncated"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    ITERATION_LIMIT = "iteration_limit"


@dataclass(frozen=True, slots=True)
class AgentRunResult:
    """Aggregated outcome of one run.

    ``loop_count`` counts tool-use rounds; ``llm_calls`` counts model
    calls (always ``loop_count + 1`` for a run that reached a final
    answer). ``total_usage`` sums every model call in the run.
    """

    success: bool
    status: RunStatus
    response: str = ""
    loop_count: int = 0
    total_tool_calls: int = 0
    llm_calls: int = 0
    total_usage: TokenUsage = field(default_factory=TokenUsage)
    error_message: str | None = None
    conversation: tuple[Message, ...] = ()

    @property
    def truncated(self) -> bool:
        """True when the final answer was cut off by the token limit."""
        return self.status is RunStatus.TRUNCATED


class _RunInterrupted(Exception):
    """Raised inside the loop when a phase is cancelled or out of time."""

    def __init__(self, status: RunStatus, message: str) -> None:
        self.status = status
        super().__init__(message)


@dataclass(slots=True)
class _RunState:
    conversation: list[Message]
    usage: TokenUsage = field(default_factory=TokenUsage)
    loop_count: int = 0
    total_tool_calls: int = 0
    llm_calls: int = 0

    def finish(
        self,
        status: RunStatus,
        *,
        response: str = "",
        error_message: str | None = None,
    ) -> AgentRunResult:
        return AgentRunResult(
            success=status in (RunStatus.COMPLETED, RunStatus.TRUNCATED),
            status=status,
            response=response,
            loop_count=self.loop_count,
            total_tool_calls=self.total_tool_calls,
            llm_calls=self.llm_calls,
            total_usage=self.usage,
            error_message=error_message,
            conversation=tuple(self.conversation),
        )


class AgentRunner:
    """Orchestrates model calls and tool execution for one turn at a time.

    The runner holds no per-run state, so a single instance can serve
    many concurrent runs.
    """

    def __init__(self, llm_client: LlmClient) -> None:
        self._llm = llm_client

    @classmethod
    def from_config(cls, config: AgentLoopConfig) -> AgentRunner:
        """Runner around the LLM client selected in ``config``."""
        from agentloop.llm.factory import create_llm_client

        return cls(create_llm_client(config))

    @property
    def llm_client(self) -> LlmClient:
        return self._llm

    async def run(
        self,
        user_message: str,
        context: AgentContext,
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> AgentRunResult:
        """Answer ``user_message``, calling tools as the model requests.

        Raises:
            ValueError: If ``user_message`` is empty or blank.
        """
        if not user_message or not user_message.strip():
            msg = "user_message must be a non-empty string"
            raise ValueError(msg)

        logger.debug(
            "Starting agent run for user %s in guild %s (max iterations %d)",
            context.tool_context.user_id,
            context.tool_context.guild_id,
            context.max_iterations,
        )

        loop = asyncio.get_running_loop()
        deadline = (
            loop.time() + context.time_budget if context.time_budget is not None else None
        )
        state = _RunState(conversation=[Message.user(user_message)])

        try:
            return await self._loop(state, context, cancel_event, deadline)
        except _RunInterrupted as e:
            logger.warning(
                "Agent run interrupted after %d tool rounds: %s", state.loop_count, e
            )
            return state.finish(e.status, error_message=str(e))

    async def _loop(
        self,
        state: _RunState,
        context: AgentContext,
        cancel_event: asyncio.Event | None,
        deadline: float | None,
    ) -> AgentRunResult:
        while True:
            request = self._build_request(state, context)
            response = await self._guard(
                self._call_model(request), cancel_event, deadline, context
            )
            state.llm_calls += 1
            state.usage = state.usage + response.usage

            logger.debug(
                "Model call %d: stop=%s, tokens %d in / %d out",
                state.llm_calls,
                response.stop_reason,
                response.usage.input_tokens,
                response.usage.output_tokens,
            )

            if not response.success or response.stop_reason is StopReason.ERROR:
                error = response.error_message or "LLM completion failed"
                logger.error("LLM call %d failed: %s", state.llm_calls, error)
                return state.finish(RunStatus.FAILED, error_message=error)

            if response.stop_reason is StopReason.END_TURN:
                state.conversation.append(Message.assistant(response.content))
                logger.info(
                    "Agent run completed: %d tool rounds, %d tool calls, %d tokens",
                    state.loop_count,
                    state.total_tool_calls,
                    state.usage.total_tokens,
                )
                return state.finish(RunStatus.COMPLETED, response=response.content or "")

            if response.stop_reason is StopReason.MAX_TOKENS:
                state.conversation.append(Message.assistant(response.content))
                logger.warning("Agent run stopped at the max tokens limit")
                return state.finish(
                    RunStatus.TRUNCATED,
                    response=response.content or "",
                    error_message="Response truncated due to max tokens limit",
                )

            # tool_use
            if context.tool_registry is None:
                return state.finish(
                    RunStatus.FAILED,
                    error_message="Tool use requested but no tool registry is configured",
                )
            if state.loop_count >= context.max_iterations:
                return state.finish(
                    RunStatus.ITERATION_LIMIT,
                    error_message=(
                        f"Exceeded maximum tool call iterations ({context.max_iterations})"
                    ),
                )

            state.conversation.append(
                Message.assistant(response.content, response.tool_calls)
            )
            results = await self._guard(
                self._execute_tools(response.tool_calls, context),
                cancel_event,
                deadline,
                context,
            )
            state.conversation.append(Message.tool_results_message(results))
            state.loop_count += 1
            state.total_tool_calls += len(response.tool_calls)

    def _build_request(self, state: _RunState, context: AgentContext) -> LlmRequest:
        tools = (
            tuple(context.tool_registry.get_enabled_tools())
            if context.tool_registry is not None
            else ()
        )
        return LlmRequest(
            system_prompt=context.system_prompt,
            messages=tuple(state.conversation),
            tools=tools or None,
            model=context.model,
            max_tokens=context.max_tokens,
            temperature=context.temperature,
            enable_prompt_caching=context.enable_prompt_caching,
        )

    async def _call_model(self, request: LlmRequest) -> LlmResponse:
        try:
            return await self._llm.complete(request)
        except Exception as e:
            # Clients must not raise; one that does still only fails this run.
            logger.exception("LLM client %s raised", self._llm.provider_name)
            return LlmResponse.failure(f"LLM client error: {e}")

    async def _execute_tools(
        self,
        calls: Sequence[ToolCall],
        context: AgentContext,
    ) -> list[ToolResult]:
        """Run one turn's tool calls concurrently; results follow call order."""
        semaphore = asyncio.Semaphore(context.max_parallel_tools)

        async def _bounded(call: ToolCall) -> tuple[str, ToolResult]:
            async with semaphore:
                return call.id, await self._execute_one(call, context)

        logger.debug("Executing %d tool calls", len(calls))
        by_id = dict(await asyncio.gather(*(_bounded(c) for c in calls)))
        return [by_id[c.id] for c in calls]

    async def _execute_one(self, call: ToolCall, context: AgentContext) -> ToolResult:
        assert context.tool_registry is not None
        try:
            result = await context.tool_registry.execute_tool(
                call.name, call.input, context.tool_context
            )
        except Exception as e:
            logger.exception("Exception executing tool %s", call.name)
            return ToolResult(
                tool_call_id=call.id,
                content=json.dumps({"error": f"Tool execution exception: {e}"}),
                is_error=True,
            )
        return ToolResult(
            tool_call_id=call.id,
            content=result.to_content(),
            is_error=not result.success,
        )

    async def _guard(
        self,
        aw: Awaitable[T],
        cancel_event: asyncio.Event | None,
        deadline: float | None,
        context: AgentContext,
    ) -> T:
        """Await ``aw`` unless the run is cancelled or out of time first.

        On cancellation or timeout the in-flight work is cancelled and
        awaited before :class:`_RunInterrupted` is raised.
        """
        task: asyncio.Future[T] = asyncio.ensure_future(aw)
        if cancel_event is not None and cancel_event.is_set():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
            raise _RunInterrupted(RunStatus.CANCELLED, "Run was cancelled")

        waiters: set[asyncio.Future[Any]] = {task}
        cancel_waiter: asyncio.Future[Any] | None = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        timeout = None
        if deadline is not None:
            timeout = max(0.0, deadline - asyncio.get_running_loop().time())

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            if cancel_waiter is not None:
                cancel_waiter.cancel()
            if not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        if task in done:
            return task.result()
        if cancel_event is not None and cancel_event.is_set():
            raise _RunInterrupted(RunStatus.CANCELLED, "Run was cancelled")
        raise _RunInterrupted(
            RunStatus.TIMED_OUT,
            f"Run exceeded its time budget of {context.time_budget}s",
        )
