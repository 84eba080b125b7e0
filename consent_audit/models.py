from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class DirectoryObject:
    id: str
    display_name: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "DirectoryObject":
        extra = {
            k: v
            for k, v in data.items()
            if k not in ("id", "displayName") and not k.startswith("@odata")
        }
        return cls(id=data["id"], display_name=data.get("displayName"), attributes=extra)


@dataclass(frozen=True)
class User:
    id: str
    display_name: Optional[str] = None
    user_principal_name: Optional[str] = None
    mail: Optional[str] = None
    given_name: Optional[str] = None
    surname: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    user_type: Optional[str] = None
    account_enabled: Optional[bool] = None

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=data["id"],
            display_name=data.get("displayName"),
            user_principal_name=data.get("userPrincipalName"),
            mail=data.get("mail"),
            given_name=data.get("givenName"),
            surname=data.get("surname"),
            job_title=data.get("jobTitle"),
            department=data.get("department"),
            user_type=data.get("userType"),
            account_enabled=data.get("accountEnabled"),
        )


# $select list matching the User fields above
USER_SELECT = (
    "id,displayName,userPrincipalName,mail,givenName,surname,"
    "jobTitle,department,userType,accountEnabled"
)


@dataclass(frozen=True)
class PermissionGrant:
    client_id: str
    resource_id: str
    scope: str = ""
    consent_type: str = "AllPrincipals"
    principal_id: Optional[str] = None

    @property
    def scopes(self) -> List[str]:
        return (self.scope or "").split()

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "PermissionGrant":
        return cls(
            client_id=data["clientId"],
            resource_id=data["resourceId"],
            scope=data.get("scope") or "",
            consent_type=data.get("consentType") or "",
            principal_id=data.get("principalId"),
        )


@dataclass(frozen=True)
class AppRoleAssignment:
    principal_id: str
    principal_type: str
    resource_id: str
    resource_display_name: Optional[str]
    app_role_id: str

    @classmethod
    def from_graph(cls, data: Dict[str, Any]) -> "AppRoleAssignment":
        return cls(
            principal_id=data["principalId"],
            principal_type=data.get("principalType") or "",
            resource_id=data["resourceId"],
            resource_display_name=data.get("resourceDisplayName"),
            app_role_id=data.get("appRoleId") or "",
        )
