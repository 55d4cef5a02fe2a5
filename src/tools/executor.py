"""Run tool calls, one at a time or fanned out across a thread pool.

Every call yields exactly one ``ToolResult``; a failing call records its
error as a string and never affects its siblings.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Any

from src.conversation import ToolCall, ToolResult
from src.services.metrics import metrics
from src.tools.registry import ToolContext, ToolContextMissing, ToolRegistry

logger = logging.getLogger(__name__)

MAX_PARALLEL_TOOLS = 8


def execute_one(
    registry: ToolRegistry,
    name: str,
    args: dict[str, Any] | None = None,
    context: ToolContext | None = None,
) -> Any:
    """Invoke a single tool and return its raw result.

    Raises:
        ToolNotFound: if *name* is not registered.
        ToolContextMissing: if the tool needs a context and none was given.
    """
    spec = registry.get(name)
    kwargs = dict(args or {})
    if spec.requires_context:
        if context is None:
            raise ToolContextMissing(f"Tool '{name}' requires a tool context")
        kwargs["context"] = context
    return spec.handler(**kwargs)


def _writes(registry: ToolRegistry, name: str) -> bool:
    return name in registry and registry.get(name).writes


def _run(registry: ToolRegistry, call: ToolCall, context: ToolContext | None) -> ToolResult:
    t0 = time.perf_counter()
    try:
        result = execute_one(registry, call.name, call.args, context)
    except Exception as exc:
        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_failure("tool", call.name, error_type=type(exc).__name__, latency_ms=elapsed)
        logger.warning("Tool %s failed: %s", call.name, exc, exc_info=True)
        return ToolResult(
            name=call.name, args=call.args, error=f"{type(exc).__name__}: {exc}", call_id=call.id,
        )
    metrics.record_success("tool", call.name, latency_ms=(time.perf_counter() - t0) * 1000)
    return ToolResult(name=call.name, args=call.args, result=result, call_id=call.id)


def execute_many(
    registry: ToolRegistry,
    calls: list[ToolCall],
    context: ToolContext | None = None,
    *,
    timeout: float | None = None,
) -> list[ToolResult]:
    """Execute *calls* concurrently and return results in input order.

    Args:
        timeout: Overall wall-clock limit in seconds.  Read-only calls still
            running when it expires are reported as failed and left to
            finish in the background.  Calls to tools registered with
            ``writes=True`` are always awaited, so a reported failure never
            hides a booking that went through.
    """
    if not calls:
        return []

    logger.debug("Executing %d tool call(s)", len(calls))
    deadline = time.monotonic() + timeout if timeout is not None else None
    pool = ThreadPoolExecutor(
        max_workers=min(len(calls), MAX_PARALLEL_TOOLS), thread_name_prefix="tool",
    )
    try:
        futures = [pool.submit(_run, registry, call, context) for call in calls]
        results: list[ToolResult] = []
        for call, future in zip(calls, futures):
            if deadline is None or _writes(registry, call.name):
                remaining = None
            else:
                remaining = max(0.0, deadline - time.monotonic())
            try:
                results.append(future.result(timeout=remaining))
            except FutureTimeout:
                metrics.record_failure("tool", call.name, error_type="Timeout")
                logger.warning("Tool %s timed out after %.1fs", call.name, timeout)
                results.append(ToolResult(
                    name=call.name,
                    args=call.args,
                    error=f"TimeoutError: tool '{call.name}' did not finish in {timeout}s",
                    call_id=call.id,
                ))
        return results
    finally:
        pool.shutdown(wait=False, cancel_futures=True)
