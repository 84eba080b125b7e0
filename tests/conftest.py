from collections import Counter
from types import MappingProxyType

import pytest

from consent_audit.directory import ProbeOutcome, ProbeResult
from consent_audit.errors import GraphError
from consent_audit.models import DirectoryObject, PermissionGrant, User
from consent_audit.report import AuditContext


class FakeDirectory:
    """In-memory stand-in for DirectoryService that counts every call."""

    def __init__(self, service_principals=(), users=(), grants=(), assignments=None, probe=None):
        self.service_principals = list(service_principals)
        self.users = {u.id: u for u in users}
        self.grants = list(grants)
        self.assignments = assignments or {}
        self.probe = probe or ProbeResult(ProbeOutcome.AVAILABLE)
        self.calls = Counter()
        self.selected_fields = []

    def get_directory_object(self, object_id):
        self.calls["get_directory_object"] += 1
        for sp in self.service_principals:
            if sp.id == object_id:
                return sp
        raise GraphError(404, f"directoryObjects/{object_id}", "Not Found")

    def get_user(self, user_id):
        self.calls["get_user"] += 1
        if user_id in self.users:
            return self.users[user_id]
        raise GraphError(404, f"users/{user_id}", "Not Found")

    def list_service_principals(self, extra_fields=()):
        self.calls["list_service_principals"] += 1
        self.selected_fields = list(extra_fields)
        return iter(self.service_principals)

    def list_users(self, limit):
        self.calls["list_users"] += 1
        return iter(list(self.users.values())[:limit])

    def probe_oauth2_grants(self, page_size=999):
        self.calls["probe_oauth2_grants"] += 1
        return self.probe

    def list_oauth2_grants(self):
        self.calls["list_oauth2_grants"] += 1
        return iter(self.grants)

    def list_oauth2_grants_for_client(self, client_id):
        self.calls["list_oauth2_grants_for_client"] += 1
        return iter([g for g in self.grants if g.client_id == client_id])

    def list_role_assignments(self, sp_id):
        self.calls["list_role_assignments"] += 1
        return iter(self.assignments.get(sp_id, []))


@pytest.fixture
def permission_names():
    return MappingProxyType(
        {
            "df85f4d6-205c-4ac5-a5ea-6bf408dba283": "Files.Read.All",
            "810c84a8-4a9e-49e6-bf7d-12d183f40d01": "Mail.Read",
        }
    )


@pytest.fixture
def tenant():
    sp1 = DirectoryObject("sp1", "Contoso CRM", {"appId": "app-1"})
    sp2 = DirectoryObject("sp2", "Payroll Sync", {"appId": "app-2"})
    graph = DirectoryObject("graph", "Microsoft Graph", {"appId": "00000003-0000-0000-c000-000000000000"})
    alice = User("u-alice", display_name="Alice Example", user_principal_name="alice@contoso.example")
    grants = [
        PermissionGrant("sp1", "graph", "Mail.Read Mail.Send", "AllPrincipals"),
        PermissionGrant("sp2", "graph", "User.Read", "Principal", "u-alice"),
    ]
    return FakeDirectory(
        service_principals=[sp1, sp2, graph],
        users=[alice],
        grants=grants,
    )


@pytest.fixture
def make_context(permission_names):
    def _make(directory):
        return AuditContext.create(directory, permission_names)

    return _make
