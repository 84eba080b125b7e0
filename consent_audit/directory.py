import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional, Sequence

import requests

from .errors import GraphError, MalformedResponseError
from .graph_client import GraphClient
from .models import USER_SELECT, AppRoleAssignment, DirectoryObject, PermissionGrant, User


class ProbeOutcome(Enum):
    AVAILABLE = "available"
    TRUNCATED = "truncated"
    FAILED = "failed"


@dataclass(frozen=True)
class ProbeResult:
    outcome: ProbeOutcome
    error: Optional[Exception] = None


class DirectoryService:
    """
    Query surface over Microsoft Graph used by the audit.

    Single lookups raise GraphError (or a requests exception) on failure;
    the object caches decide what a failure means for them.
    """

    def __init__(self, client: GraphClient):
        self.client = client

    def get_directory_object(self, object_id: str) -> DirectoryObject:
        return DirectoryObject.from_graph(self.client.get(f"directoryObjects/{object_id}"))

    def get_user(self, user_id: str) -> User:
        return User.from_graph(
            self.client.get(f"users/{user_id}", params={"$select": USER_SELECT})
        )

    def list_service_principals(self, extra_fields: Sequence[str] = ()) -> Iterator[DirectoryObject]:
        fields = ["id", "appId", "displayName", "servicePrincipalType"]
        fields += [f for f in extra_fields if f not in fields]
        for sp in self.client.paged_get(
            "servicePrincipals",
            params={"$select": ",".join(fields)},
        ):
            yield DirectoryObject.from_graph(sp)

    def list_users(self, limit: int) -> Iterator[User]:
        # Graph caps $top at 999 for users
        if limit <= 0:
            return
        top = min(limit, 999)
        pages = -(-limit // top)
        fetched = 0
        for user in self.client.paged_get(
            "users", params={"$top": top, "$select": USER_SELECT}, page_limit=pages
        ):
            if fetched >= limit:
                break
            fetched += 1
            yield User.from_graph(user)

    def list_oauth2_grants(self) -> Iterator[PermissionGrant]:
        for grant in self.client.paged_get("oauth2PermissionGrants"):
            yield PermissionGrant.from_graph(grant)

    def list_oauth2_grants_for_client(self, client_id: str) -> Iterator[PermissionGrant]:
        for grant in self.client.paged_get(
            "oauth2PermissionGrants", params={"$filter": f"clientId eq '{client_id}'"}
        ):
            yield PermissionGrant.from_graph(grant)

    def list_role_assignments(self, sp_id: str) -> Iterator[AppRoleAssignment]:
        for assignment in self.client.paged_get(
            f"servicePrincipals/{sp_id}/appRoleAssignments"
        ):
            yield AppRoleAssignment.from_graph(assignment)

    def probe_oauth2_grants(self, page_size: int = 999) -> ProbeResult:
        """
        Fetch a single bounded page of grants to find out whether the bulk
        listing can be trusted for this tenant.
        """
        try:
            for _ in self.client.paged_get(
                "oauth2PermissionGrants", params={"$top": page_size}, page_limit=1
            ):
                pass
        except MalformedResponseError as e:
            logging.info(f"Bulk grant listing returned an unreadable page: {e}")
            return ProbeResult(ProbeOutcome.TRUNCATED, e)
        except (GraphError, requests.RequestException) as e:
            return ProbeResult(ProbeOutcome.FAILED, e)
        return ProbeResult(ProbeOutcome.AVAILABLE)
