# src/discourse_near/api/v1/endpoints/system.py
"""Operational endpoints."""

from fastapi import APIRouter

from discourse_near.api.v1.dependencies import ContainerDep
from discourse_near.schemas.common import CamelModel

router = APIRouter(prefix="/system", tags=["system"])


class SystemStatus(CamelModel):
    pending_nonces: int
    linkages: int
    nonce_sweeper_running: bool


@router.get("/status", response_model=SystemStatus)
async def system_status(container: ContainerDep) -> SystemStatus:
    """Report registry sizes and whether the nonce sweeper is active."""
    return SystemStatus(
        pending_nonces=len(container.nonces),
        linkages=container.linkages.count(),
        nonce_sweeper_running=container.sweeper.running,
    )
