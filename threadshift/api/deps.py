"""Shared route dependencies."""

from fastapi import HTTPException, Request

from threadshift.plugin import ThreadshiftCore


def get_core(request: Request) -> ThreadshiftCore:
    core: ThreadshiftCore = request.app.state.core
    if not core.initialized:
        raise HTTPException(503, "Threadshift core is not initialized")
    return core
