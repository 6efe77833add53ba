from collections.abc import Callable, Sequence
from contextlib import asynccontextmanager
import inspect

from fastapi import FastAPI


async def _run(hooks: Sequence[Callable]) -> None:
    for hook in hooks:
        result = hook()
        if inspect.isawaitable(result):
            await result


def build_lifespan(
    startup: Sequence[Callable] = (),
    shutdown: Sequence[Callable] = (),
):
    """
    Build a FastAPI lifespan from plain startup/shutdown hooks, replacing the
    deprecated @on_event API. Hooks may be sync or async.
    Usage:
        app = FastAPI(lifespan=build_lifespan(startup=[_create_schema]))
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await _run(startup)
        try:
            yield
        finally:
            await _run(shutdown)

    return lifespan
