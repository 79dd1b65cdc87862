"""API dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from outreach.automation.runtime import AutomationRuntime


def get_runtime(request: Request) -> AutomationRuntime:
    """Get the automation runtime attached to the app at startup."""
    runtime: AutomationRuntime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Automation runtime not initialised",
        )
    return runtime


Runtime = Annotated[AutomationRuntime, Depends(get_runtime)]
