"""
FastAPI dependencies.

The service manager is created once per app (or injected by tests) and
kept on ``app.state``; routers receive it through :data:`Manager`.

Tags:
    review-spine, api, dependency-injection
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from review_spine.scheduling.manager import ReviewServiceManager


def get_manager(request: Request) -> ReviewServiceManager:
    return request.app.state.manager


Manager = Annotated[ReviewServiceManager, Depends(get_manager)]
