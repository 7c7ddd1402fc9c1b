"""
Server-Sent Events (SSE) stream of run progress.
SSE fits one-directional progress updates: simple, auto-reconnecting, HTTP-based.

A client connecting mid-run first receives the events already emitted, then
live ones, and finally one message carrying the terminal state.
"""
import asyncio
import json
from typing import Any, AsyncIterator, Dict

from deepguard.core.logging import get_logger
from deepguard.pipeline.callbacks import ProgressEvent
from deepguard.pipeline.runner import Run

logger = get_logger("sse")

# Limit queue size to prevent memory issues with slow clients
MAX_QUEUE_SIZE = 100

_DONE = object()


def format_sse(event: str, data: Dict[str, Any]) -> str:
    """Format one SSE message: "event: <name>\\ndata: {json}\\n\\n"."""
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _signal_when_done(run: Run, queue: asyncio.Queue) -> None:
    await run.wait()
    await queue.put(_DONE)


async def event_generator(run: Run) -> AsyncIterator[str]:
    """
    Generator for SSE events of one run.
    Yields formatted SSE messages until the run is terminal.
    """
    queue: asyncio.Queue = asyncio.Queue(maxsize=MAX_QUEUE_SIZE)

    def on_progress(event: ProgressEvent) -> None:
        try:
            queue.put_nowait(event.to_dict())
        except asyncio.QueueFull:
            logger.warning(f"Queue full for run {run.run_id}, client may be slow")

    # Subscribe and snapshot in one step so no event is missed or repeated
    unsubscribe = run.subscribe_progress(on_progress)
    history = run.progress_events()
    watcher = asyncio.create_task(_signal_when_done(run, queue))
    logger.info(f"SSE connected for run {run.run_id}")

    try:
        for event in history:
            yield format_sse("progress", event.to_dict())

        while True:
            item = await queue.get()
            if item is _DONE:
                break
            yield format_sse("progress", item)

        yield format_sse(run.state().value, {
            "run_id": run.run_id,
            "state": run.state().value,
            "result": run.result().to_dict() if run.result() else None,
            "failure": run.failure().to_dict() if run.failure() else None,
        })
    except asyncio.CancelledError:
        logger.info(f"SSE stream cancelled for run {run.run_id}")
        raise
    finally:
        unsubscribe()
        watcher.cancel()
