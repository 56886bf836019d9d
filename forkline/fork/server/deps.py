"""
Runtime Dependency.

Endpoints receive the process runtime built during the application lifespan.
"""

from typing import Annotated

from fastapi import Depends, Request

from forkline.fork.bootstrap import ForkRuntime


def get_runtime(request: Request) -> ForkRuntime:
    runtime = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise RuntimeError("Runtime not started. The application lifespan has not run.")
    return runtime


RuntimeDep = Annotated[ForkRuntime, Depends(get_runtime)]
