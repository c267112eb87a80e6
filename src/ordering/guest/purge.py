"""Purging spent and stale guest grants.

A grant must outlive its token by one full validity window so a replayed
token is still recognized. After that the signature check alone rejects it
as expired, and the record can go.
"""

from datetime import UTC, datetime, timedelta

import structlog
from protean import handle
from protean.fields import DateTime
from protean.utils.globals import current_domain

from ordering.config import get_settings
from ordering.domain import ordering
from ordering.guest.grant import GuestGrant

logger = structlog.get_logger(__name__)


@ordering.command(part_of="GuestGrant")
class PurgeGuestGrants:
    as_of = DateTime()


@ordering.command_handler(part_of=GuestGrant)
class PurgeGuestGrantsHandler:
    @handle(PurgeGuestGrants)
    def purge(self, command):
        as_of = command.as_of or datetime.now(UTC)
        cutoff = as_of - timedelta(seconds=get_settings().guest_authorization_ttl_seconds)

        repo = current_domain.repository_for(GuestGrant)
        purged = 0
        # Queries are paged, so keep going until a page comes back empty
        while True:
            batch = repo._dao.query.filter(expires_at__lt=cutoff).all().items
            if not batch:
                break
            for grant in batch:
                repo._dao.delete(grant)
            purged += len(batch)

        logger.info("guest_grants_purged", purged=purged, as_of=as_of)
        return purged
