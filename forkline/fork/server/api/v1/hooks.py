"""
Hook Point Endpoints.

List every declared hook point with its contract and the handlers attached to
it, in dispatch order.
"""

from fastapi import APIRouter

from forkline.fork.server.deps import RuntimeDep

router = APIRouter()


@router.get(
    "",
    summary="List Hook Points",
    description="Return declared hook points and their handlers in dispatch order.",
)
async def list_hooks(runtime: RuntimeDep):
    dispatcher = runtime.dispatcher
    return [
        {
            "name": point.name,
            "composition": point.composition.value,
            "failure_mode": point.failure_mode.value,
            "description": point.description,
            "handlers": [{"name": reg.name, "order": reg.order} for reg in dispatcher.registrations(point.name)],
        }
        for point in dispatcher.points()
    ]
