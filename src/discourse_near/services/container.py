"""Construction and teardown of the service graph."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from discourse_near.core.settings import Settings
from discourse_near.db.session import create_session_factory
from discourse_near.services.discourse import DiscourseClient, DiscourseConfig
from discourse_near.services.linkage import (
    DatabaseLinkageStore,
    InMemoryLinkageStore,
    LinkageStore,
)
from discourse_near.services.linking import LinkingPolicy, LinkingService
from discourse_near.services.near_auth import NearAuthVerifier
from discourse_near.services.nonce import NonceRegistry
from discourse_near.services.nonce_sweeper import NonceSweepWorker

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived collaborators shared by every request."""

    nonces: NonceRegistry
    linkages: LinkageStore
    discourse: DiscourseClient
    verifier: NearAuthVerifier
    linking: LinkingService
    sweeper: NonceSweepWorker

    async def start(self) -> None:
        await self.sweeper.start()

    async def close(self) -> None:
        await self.sweeper.stop()
        await self.discourse.close()
        await self.verifier.close()


def build_linkage_store(settings: Settings) -> LinkageStore:
    if settings.linkage_backend == "database":
        logger.info("Using database linkage store")
        return DatabaseLinkageStore(
            create_session_factory(settings.database_url, echo=settings.sql_debug)
        )
    return InMemoryLinkageStore()


def build_container(settings: Settings) -> ServiceContainer:
    """Wire the services described by ``settings``."""
    nonces = NonceRegistry(ttl_seconds=settings.nonce_ttl_seconds)
    linkages = build_linkage_store(settings)
    discourse = DiscourseClient(
        DiscourseConfig(
            base_url=settings.discourse_url,
            api_key=settings.discourse_api_key,
            api_username=settings.discourse_api_username,
            timeout_seconds=settings.discourse_http_timeout_seconds,
        )
    )
    verifier = NearAuthVerifier(
        settings.near_rpc_url,
        verify_access_key=settings.near_verify_access_key,
        timeout_seconds=settings.near_rpc_timeout_seconds,
    )
    linking = LinkingService(
        nonces=nonces,
        linkages=linkages,
        forum=discourse,
        verifier=verifier,
        policy=LinkingPolicy(
            client_id=settings.client_id,
            application_name=settings.application_name,
            recipient=settings.near_recipient,
            scopes=tuple(settings.discourse_scopes),
            link_max_age_seconds=settings.near_link_max_age_seconds,
            post_max_age_seconds=settings.near_post_max_age_seconds,
        ),
    )
    return ServiceContainer(
        nonces=nonces,
        linkages=linkages,
        discourse=discourse,
        verifier=verifier,
        linking=linking,
        sweeper=NonceSweepWorker(nonces, settings.nonce_sweep_interval_seconds),
    )
