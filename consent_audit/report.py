import logging
from dataclasses import dataclass, field
from operator import attrgetter
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from tqdm import tqdm

from .directory import DirectoryService
from .grant_strategy import GrantStrategy, choose_strategy, iter_grants
from .models import AppRoleAssignment, DirectoryObject, PermissionGrant, User
from .object_cache import ObjectCache
from .permission_names import load_permission_names, lookup

DELEGATED = "Delegated"
APPLICATION = "Application"

DEFAULT_USER_PROPERTIES = ("DisplayName",)

BASE_COLUMNS = [
    "PermissionType",
    "ClientName",
    "ClientId",
    "ResourceId",
    "ResourceName",
    "Permission",
]
DELEGATED_COLUMNS = ["ConsentType", "PrincipalId"]

# Requested property columns may never shadow these
RESERVED_COLUMNS = {c.lower() for c in BASE_COLUMNS + DELEGATED_COLUMNS}

# Requested user attribute (case-insensitive) -> accessor on User
USER_ATTRIBUTES: Dict[str, Callable[[User], Any]] = {
    "objectid": attrgetter("id"),
    "displayname": attrgetter("display_name"),
    "userprincipalname": attrgetter("user_principal_name"),
    "mail": attrgetter("mail"),
    "givenname": attrgetter("given_name"),
    "surname": attrgetter("surname"),
    "jobtitle": attrgetter("job_title"),
    "department": attrgetter("department"),
    "usertype": attrgetter("user_type"),
    "accountenabled": attrgetter("account_enabled"),
}

# Requested client attribute (case-insensitive) -> servicePrincipal field
CLIENT_ATTRIBUTES: Dict[str, str] = {
    "appid": "appId",
    "appdisplayname": "appDisplayName",
    "appownerorganizationid": "appOwnerOrganizationId",
    "accountenabled": "accountEnabled",
    "serviceprincipaltype": "servicePrincipalType",
    "signinaudience": "signInAudience",
    "publishername": "publisherName",
    "homepage": "homepage",
    "createddatetime": "createdDateTime",
}


def user_attribute(name: str) -> Callable[[User], Any]:
    return USER_ATTRIBUTES.get(name.lower(), lambda user: None)


def client_attribute(name: str) -> Callable[[DirectoryObject], Any]:
    key = CLIENT_ATTRIBUTES.get(name.lower())
    if key is None:
        return lambda obj: None
    return lambda obj: obj.attributes.get(key)


def client_select(names: Sequence[str]) -> List[str]:
    """Graph field names to $select for the requested client properties."""
    return [CLIENT_ATTRIBUTES[n.lower()] for n in names if n.lower() in CLIENT_ATTRIBUTES]


def usable_properties(prefix: str, names: Sequence[str]) -> Tuple[str, ...]:
    """
    Requested property names whose column (prefix + name) is free: neither a
    fixed report column nor a repeat of an earlier request.
    """
    taken = set(RESERVED_COLUMNS)
    kept = []
    for name in names:
        column = f"{prefix}{name}".lower()
        if column in taken:
            continue
        taken.add(column)
        kept.append(name)
    return tuple(kept)


@dataclass
class AuditOptions:
    delegated: bool = True
    application: bool = True
    user_properties: Sequence[str] = DEFAULT_USER_PROPERTIES
    client_properties: Sequence[str] = ()
    precache_size: int = 999
    show_progress: bool = False

    def __post_init__(self):
        for attr, prefix in (("user_properties", "Principal"), ("client_properties", "Client")):
            requested = tuple(getattr(self, attr))
            kept = usable_properties(prefix, requested)
            if len(kept) < len(requested):
                logging.warning(
                    f"Ignoring {attr} that repeat an existing column: "
                    f"kept {list(kept)} of {list(requested)}"
                )
            setattr(self, attr, kept)


@dataclass
class AuditContext:
    """
    Per-run state: the directory, both object caches and the permission
    table. Build one per run with AuditContext.create().
    """

    directory: DirectoryService
    permission_names: Mapping[str, str]
    objects: ObjectCache[DirectoryObject]
    users: ObjectCache[User]
    clients: List[DirectoryObject] = field(default_factory=list)

    @classmethod
    def create(
        cls,
        directory: DirectoryService,
        permission_names: Optional[Mapping[str, str]] = None,
    ) -> "AuditContext":
        return cls(
            directory=directory,
            permission_names=(
                permission_names
                if permission_names is not None
                else load_permission_names()
            ),
            objects=ObjectCache(directory.get_directory_object, name="object"),
            users=ObjectCache(directory.get_user, name="user"),
        )

    def load_clients(
        self, show_progress: bool = False, client_properties: Sequence[str] = ()
    ) -> List[DirectoryObject]:
        sps = tqdm(
            self.directory.list_service_principals(client_select(client_properties)),
            desc="Caching service principals",
            unit="sp",
            leave=False,
            disable=not show_progress,
        )
        self.clients = [self.objects.add(sp) for sp in sps]
        logging.info(f"Cached {len(self.clients)} service principals")
        return self.clients

    def precache_users(self, limit: int) -> int:
        count = 0
        for user in self.directory.list_users(limit):
            self.users.add(user)
            count += 1
        logging.info(f"Precached {count} users")
        return count


def report_columns(options: AuditOptions) -> List[str]:
    columns = list(BASE_COLUMNS)
    columns += [f"Client{name}" for name in options.client_properties]
    if options.delegated:
        columns += DELEGATED_COLUMNS
        columns += [f"Principal{name}" for name in options.user_properties]
    return columns


def _display_name(obj: Optional[DirectoryObject]) -> Optional[str]:
    return obj.display_name if obj is not None else None


def _client_fields(
    client: Optional[DirectoryObject], properties: Sequence[str]
) -> Dict[str, Any]:
    return {
        f"Client{name}": client_attribute(name)(client) if client is not None else None
        for name in usable_properties("Client", properties)
    }


def _principal_fields(
    context: AuditContext, principal_id: Optional[str], properties: Sequence[str]
) -> Dict[str, Any]:
    properties = usable_properties("Principal", properties)
    principal = (
        context.users.get_or_fetch(principal_id) if principal_id and properties else None
    )
    return {
        f"Principal{name}": (
            user_attribute(name)(principal) if principal is not None else None
        )
        for name in properties
    }


def delegated_grant_rows(
    context: AuditContext,
    grant: PermissionGrant,
    properties: Sequence[str] = (),
    client_properties: Sequence[str] = (),
) -> Iterator[Dict[str, Any]]:
    scopes = grant.scopes
    if not scopes:
        return

    client = context.objects.get_or_fetch(grant.client_id)
    resource = context.objects.get_or_fetch(grant.resource_id)
    client_fields = _client_fields(client, client_properties)
    principal = _principal_fields(context, grant.principal_id, properties)

    for scope in scopes:
        row = {
            "PermissionType": DELEGATED,
            "ClientName": _display_name(client),
            "ClientId": grant.client_id,
            "ResourceId": grant.resource_id,
            "ResourceName": _display_name(resource),
            "Permission": scope,
            **client_fields,
            "ConsentType": grant.consent_type,
            "PrincipalId": grant.principal_id,
            **principal,
        }
        yield row


def application_assignment_row(
    context: AuditContext,
    assignment: AppRoleAssignment,
    client_properties: Sequence[str] = (),
) -> Optional[Dict[str, Any]]:
    # app-to-app only; user and group assignments are not permissions
    if assignment.principal_type != "ServicePrincipal":
        return None

    assignee = context.objects.get_or_fetch(assignment.principal_id)
    return {
        "PermissionType": APPLICATION,
        "ClientName": _display_name(assignee),
        "ClientId": assignment.principal_id,
        "ResourceId": assignment.resource_id,
        "ResourceName": assignment.resource_display_name,
        "Permission": lookup(context.permission_names, assignment.app_role_id),
        **_client_fields(assignee, client_properties),
    }


def delegated_rows(context: AuditContext, options: AuditOptions) -> Iterator[Dict[str, Any]]:
    if options.user_properties:
        context.precache_users(options.precache_size)

    strategy = choose_strategy(context.directory)
    if strategy is GrantStrategy.BULK:
        grants = tqdm(
            iter_grants(context.directory, strategy, context.clients),
            desc="Delegated grants",
            unit="grant",
            leave=False,
            disable=not options.show_progress,
        )
    else:
        clients = tqdm(
            context.clients,
            desc="Delegated grants (per client)",
            unit="sp",
            leave=False,
            disable=not options.show_progress,
        )
        grants = iter_grants(context.directory, strategy, clients)

    for grant in grants:
        yield from delegated_grant_rows(
            context, grant, options.user_properties, options.client_properties
        )


def application_rows(context: AuditContext, options: AuditOptions) -> Iterator[Dict[str, Any]]:
    clients = tqdm(
        context.clients,
        desc="Application permissions",
        unit="sp",
        leave=False,
        disable=not options.show_progress,
    )
    for client in clients:
        for assignment in context.directory.list_role_assignments(client.id):
            row = application_assignment_row(context, assignment, options.client_properties)
            if row is not None:
                yield row


def audit(context: AuditContext, options: AuditOptions) -> Iterator[Dict[str, Any]]:
    """
    Lazily produce one report row per delegated scope and per application
    role assignment. Single pass; nothing is queried until iteration starts.
    """
    context.load_clients(options.show_progress, options.client_properties)

    if options.delegated:
        yield from delegated_rows(context, options)
    if options.application:
        yield from application_rows(context, options)
