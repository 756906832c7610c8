import asyncio
import logging
import threading
from typing import Optional

import streamlit as st


logger = logging.getLogger(__name__)


class AsyncBridge:
    """
    Bridge between Streamlit script reruns (sync) and one long-lived asyncio loop.

    The loop runs forever in a daemon thread so async clients that bind to a
    loop (gRPC aio used by Gemini) keep working across reruns.
    """

    def __init__(self):
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self.thread: Optional[threading.Thread] = None
        self._started = threading.Event()

    def start(self) -> "AsyncBridge":
        logger.info("Starting asyncio bridge in background thread")
        self.thread = threading.Thread(target=self._run_event_loop, name="emotivision-loop", daemon=True)
        self.thread.start()
        self._started.wait()
        return self

    def _run_event_loop(self) -> None:
        self.loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.loop)
        self._started.set()
        self.loop.run_forever()
        logger.debug("asyncio loop stopped")

    def run(self, coro, timeout: Optional[float] = None):
        """Run a coroutine on the bridge loop and block the script until it finishes."""
        if self.loop is None:
            raise RuntimeError("asyncio loop not started")
        future = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return future.result(timeout=timeout)


@st.cache_resource
def get_async_bridge() -> AsyncBridge:
    return AsyncBridge().start()
