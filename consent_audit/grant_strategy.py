import logging
from enum import Enum
from typing import Iterable, Iterator

from .directory import DirectoryService, ProbeOutcome
from .models import DirectoryObject, PermissionGrant

# The bulk listing is known to break once a tenant has more grants than this
PROBE_PAGE_SIZE = 999


class GrantStrategy(Enum):
    BULK = "bulk"
    PER_CLIENT = "per-client"


def choose_strategy(
    directory: DirectoryService, page_size: int = PROBE_PAGE_SIZE
) -> GrantStrategy:
    """
    Probe the bulk grant listing once and decide how to enumerate grants
    for the rest of the run. Errors other than an unreadable page are
    raised as-is.
    """
    result = directory.probe_oauth2_grants(page_size)
    if result.outcome is ProbeOutcome.AVAILABLE:
        return GrantStrategy.BULK
    if result.outcome is ProbeOutcome.TRUNCATED:
        logging.info("Bulk grant listing unusable, querying grants per client instead")
        return GrantStrategy.PER_CLIENT
    raise result.error


def iter_grants(
    directory: DirectoryService,
    strategy: GrantStrategy,
    clients: Iterable[DirectoryObject],
) -> Iterator[PermissionGrant]:
    if strategy is GrantStrategy.BULK:
        yield from directory.list_oauth2_grants()
        return

    for client in clients:
        yield from directory.list_oauth2_grants_for_client(client.id)
