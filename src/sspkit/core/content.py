"""Sample content bootstrap.

Copies the bundled sample catalog, baseline profiles and extension guidance
into a content store, and writes a sample SSP.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from importlib import resources
from typing import TYPE_CHECKING

from ..compliance.catalog import DEFAULT_CATALOG_KEY
from ..models.baseline import Tier
from ..models.ssp import ComplianceDocument, ImplementationRecord, ImplementationStatus
from .storage import ContentNotFound, ContentStore

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

SAMPLE_SSP_ID = "sample-ssp"


def _walk(node: Traversable, prefix: str = ""):
    for child in node.iterdir():
        name = f"{prefix}{child.name}"
        if child.is_dir():
            yield from _walk(child, f"{name}/")
        elif child.name.endswith((".json", ".yaml", ".yml")):
            yield name, child


def _exists(store: ContentStore, key: str) -> bool:
    try:
        store.read(key)
    except ContentNotFound:
        return False
    return True


def seed_content(store: ContentStore, overwrite: bool = False) -> list[str]:
    """Copy bundled content into ``store``. Returns the keys written."""
    data_pkg = resources.files("sspkit.data")
    targets: dict[str, Traversable] = {}
    for name, node in _walk(data_pkg):
        if name == "catalog.json":
            targets[DEFAULT_CATALOG_KEY] = node
        else:
            targets[name] = node

    written: list[str] = []
    for key, node in sorted(targets.items()):
        if not overwrite and _exists(store, key):
            continue
        store.write(key, node.read_bytes())
        written.append(key)
    return written


def build_sample_ssp(now: datetime) -> ComplianceDocument:
    records = [
        ("AC-1", ImplementationStatus.IMPLEMENTED,
         "Access control policy is documented in the organization security policy manual "
         "and reviewed annually.",
         ["security-team", "it-department"]),
        ("AC-2", ImplementationStatus.PARTIALLY_IMPLEMENTED,
         "Account management procedures are in place; automated notifications for "
         "terminated users are still being implemented.",
         ["system-administrators"]),
        ("SI-4", ImplementationStatus.PLANNED,
         "An intrusion detection system will be deployed next quarter.",
         ["security-team"]),
    ]
    return ComplianceDocument(
        id=SAMPLE_SSP_ID,
        uuid=str(uuid.uuid4()),
        title="Sample System Security Plan",
        description="This is a sample system for testing purposes",
        tier=Tier.MODERATE,
        authorization_type="oscal",
        implementations=[
            ImplementationRecord(
                control_id=control_id,
                status=status,
                description=description,
                responsible_roles=roles,
                last_updated=now,
            )
            for control_id, status, description, roles in records
        ],
        created=now,
        updated=now,
    )
