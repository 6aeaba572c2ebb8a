"""
App-owned thread pool for running blocking functions.

Python's default ``ThreadPoolExecutor`` (the one ``asyncio.to_thread`` uses)
gets shut down when the event-loop or Uvicorn exits.  Once that happens every
subsequent ``asyncio.to_thread()`` call raises::

    RuntimeError: cannot schedule new futures after shutdown

Screen grabs, screenshot writes and image reads all go through this pool::

    from codelens.core.thread_pool import run_in_thread
    data = await run_in_thread(path.read_bytes)
"""

import asyncio
import concurrent.futures
import functools

# Shared executor for the whole application.
_app_executor = concurrent.futures.ThreadPoolExecutor(
    max_workers=4, thread_name_prefix="codelens-worker"
)


async def run_in_thread(func, *args, **kwargs):
    """Run *func(*args, **kwargs)* in the app-owned thread pool.

    Supports keyword arguments (which plain ``loop.run_in_executor`` does
    not).
    """
    loop = asyncio.get_running_loop()
    call = functools.partial(func, *args, **kwargs)
    return await loop.run_in_executor(_app_executor, call)
