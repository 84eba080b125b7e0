import json
from importlib import resources
from types import MappingProxyType
from typing import Mapping, Optional

DATA_FILE = "permission_names.json"


def load_permission_names() -> Mapping[str, str]:
    """
    Load the permission GUID -> scope name table shipped with the package.
    Keys are lower-cased; the returned mapping is read-only.
    """
    asset = resources.files("consent_audit").joinpath("data").joinpath(DATA_FILE)
    table = {
        guid.lower(): name
        for guid, name in json.loads(asset.read_text(encoding="utf-8")).items()
    }
    return MappingProxyType(table)


def lookup(table: Mapping[str, str], permission_id: Optional[str]) -> Optional[str]:
    if not permission_id:
        return None
    return table.get(permission_id.lower())
