"""
Feature Set Endpoints.

Expose the feature set the process resolved at startup: the bound variant of
each capability and the variants compiled into the build.
"""

from fastapi import APIRouter

from forkline.fork.server.deps import RuntimeDep

router = APIRouter()


@router.get(
    "",
    summary="Get Feature Set",
    description="Return the resolved feature set of this process.",
    response_description="Bindings, compiled flags and requested flags.",
)
async def get_features(runtime: RuntimeDep):
    result = runtime.feature_set.as_dict()
    result["backends"] = [
        {"capability": handle.capability, "variant": handle.variant} for handle in runtime.registry.handles()
    ]
    return result
