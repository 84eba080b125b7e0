"""
Regenerate data/permission_names.json from the Microsoft Graph permissions
reference published in the microsoft-graph-docs-contrib repository.

    python -m consent_audit.refresh_permissions [output_path]
"""
import json
import logging
import re
import sys
from pathlib import Path
from typing import Dict, Iterator, Tuple

import requests

RAW_URL = (
    "https://raw.githubusercontent.com/"
    "microsoftgraph/microsoft-graph-docs-contrib/main/"
    "concepts/permissions-reference.md"
)

DEFAULT_OUTPUT = Path(__file__).parent / "data" / "permission_names.json"

_GUID = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.I
)


def parse_identifiers(md_text: str) -> Iterator[Tuple[str, str]]:
    """
    Yield (guid, permission) pairs from the reference markdown.

    Each permission is a "### Name" block holding a table whose
    "Identifier" row lists the application GUID then the delegated GUID;
    a "-" marks the missing variant.
    """
    blocks = re.split(r"^### ", md_text, flags=re.MULTILINE)[1:]

    for block in blocks:
        lines = block.splitlines()
        permission = lines[0].strip()
        for line in lines:
            cols = [c.strip() for c in line.split("|")][1:-1]
            if len(cols) < 3 or cols[0] != "Identifier":
                continue
            for guid in cols[1:3]:
                if _GUID.match(guid):
                    yield guid.lower(), permission
            break


def build_table(md_text: str) -> Dict[str, str]:
    table: Dict[str, str] = {}
    for guid, permission in parse_identifiers(md_text):
        table.setdefault(guid, permission)
    return table


def main(output_path=DEFAULT_OUTPUT):
    resp = requests.get(RAW_URL, timeout=120)
    resp.raise_for_status()

    table = build_table(resp.text)
    with open(output_path, "w", encoding="utf-8") as fout:
        json.dump(table, fout, indent=2, ensure_ascii=False)
        fout.write("\n")

    logging.info(f"Generated {len(table)} entries to {output_path}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    main(*sys.argv[1:2])
