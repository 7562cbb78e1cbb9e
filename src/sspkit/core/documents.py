"""Compliance document (SSP) store.

Each SSP is one JSON document under ``<prefix>/<id>.json``, always read and
written wholesale. Mutations go through ``editing()``: a per-document lock is
held across read, mutate and write, and nothing is written when the mutation
raises. Writers in other processes are not coordinated (last writer wins).
"""

from __future__ import annotations

import re
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator, Optional, Union

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from ..compliance.baseline import BaselineResolver, to_tier
from ..errors import (
    DocumentNotFound,
    ImplementationNotFound,
    InvalidDocumentId,
    InvalidParameter,
    InvalidStatus,
    StorageUnavailable,
)
from ..models.baseline import ProfileKind
from ..models.control import ControlIdentifier
from ..models.ssp import ComplianceDocument, DocumentSummary, ImplementationRecord, ImplementationStatus
from ..utils.control_ids import coerce
from .storage import ContentNotFound, ContentStore

console = Console(stderr=True)

DOCUMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*\Z")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_document_id() -> str:
    return str(uuid.uuid4())


def to_status(value: Union[str, ImplementationStatus]) -> ImplementationStatus:
    if isinstance(value, ImplementationStatus):
        return value
    try:
        return ImplementationStatus(value)
    except ValueError:
        raise InvalidStatus(value, [s.value for s in ImplementationStatus]) from None


def to_roles(value: object) -> list[str]:
    """Accept a list of role names, or a single name."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value else []
    if isinstance(value, (list, tuple)) and all(isinstance(r, str) for r in value):
        return list(value)
    raise InvalidParameter("responsibleRoles", value, "a list of role names")


class DocumentStore:
    """Create, read and update SSPs in a content store."""

    def __init__(
        self,
        store: ContentStore,
        resolver: BaselineResolver,
        prefix: str = "ssp",
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.prefix = prefix.strip("/")
        self.clock = clock or utc_now
        self.id_factory = id_factory or new_document_id
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _key(self, document_id: str) -> str:
        return f"{self.prefix}/{document_id}.json"

    def _lock_for(self, document_id: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(document_id, threading.Lock())

    def _save(self, document: ComplianceDocument) -> None:
        data = document.model_dump_json(indent=2).encode("utf-8")
        self.store.write(self._key(document.id), data)

    def create(
        self,
        title: str,
        description: str,
        tier: str,
        document_id: Optional[str] = None,
        kind: Union[str, ProfileKind] = ProfileKind.STANDARD,
    ) -> ComplianceDocument:
        """Create an SSP seeded with one PLANNED record per baseline control."""
        tier = to_tier(tier)
        if document_id is not None and not DOCUMENT_ID_PATTERN.match(document_id):
            raise InvalidDocumentId(document_id)

        profile = self.resolver.resolve_profile(tier, kind)
        now = self.clock()

        implementations = [
            ImplementationRecord(
                control_id=control_id,
                status=ImplementationStatus.PLANNED,
                description="",
                responsible_roles=[],
                last_updated=now,
            )
            for control_id in sorted(profile.controls, key=ControlIdentifier.sort_key)
        ]

        document = ComplianceDocument(
            id=document_id or self.id_factory(),
            uuid=str(uuid.uuid4()),
            title=title,
            description=description or "",
            tier=tier,
            profile_kind=profile.kind,
            implementations=implementations,
            created=now,
            updated=now,
        )
        with self._lock_for(document.id):
            self._save(document)
        return document

    def import_document(self, document: ComplianceDocument) -> ComplianceDocument:
        """Persist a complete document as-is, replacing any stored copy."""
        if not DOCUMENT_ID_PATTERN.match(document.id):
            raise InvalidDocumentId(document.id)
        with self._lock_for(document.id):
            self._save(document)
        return document

    def get(self, document_id: str) -> ComplianceDocument:
        if not isinstance(document_id, str) or not DOCUMENT_ID_PATTERN.match(document_id):
            raise DocumentNotFound(document_id)
        key = self._key(document_id)
        try:
            raw = self.store.read(key)
        except ContentNotFound:
            raise DocumentNotFound(document_id) from None
        try:
            return ComplianceDocument.model_validate_json(raw)
        except ValidationError as e:
            raise StorageUnavailable("parse", key, f"{e.error_count()} validation errors") from e

    def list(self) -> list[DocumentSummary]:
        """Summaries of every stored SSP, ordered by id.

        Only ``<prefix>/<id>.json`` keys count. Nested keys and names that are
        not valid ids are ignored; an unreadable document is reported on
        stderr and left out of the listing.
        """
        summaries: list[DocumentSummary] = []
        start = len(self.prefix) + 1 if self.prefix else 0
        for key in self.store.list(self.prefix):
            name = key[start:]
            if "/" in name or not name.endswith(".json"):
                continue
            document_id = name[: -len(".json")]
            if not DOCUMENT_ID_PATTERN.match(document_id):
                continue
            try:
                document = self.get(document_id)
            except StorageUnavailable as e:
                if e.operation != "parse":
                    raise
                console.print(f"  [yellow]Skipped[/yellow] {escape(key)}: {escape(e.message)}")
                continue
            summaries.append(DocumentSummary(
                id=document.id,
                title=document.title,
                tier=document.tier,
                status=document.status,
                created=document.created,
                updated=document.updated,
            ))
        return sorted(summaries, key=lambda s: s.id)

    @contextmanager
    def editing(self, document_id: str) -> Iterator[ComplianceDocument]:
        """Read-modify-write scope. The document is written only if the block succeeds."""
        with self._lock_for(document_id):
            document = self.get(document_id)
            yield document
            document.updated = self.clock()
            self._save(document)

    def upsert_implementation(
        self,
        document_id: str,
        control_id: Union[str, ControlIdentifier],
        status: Union[str, ImplementationStatus],
        description: str = "",
        roles: Union[list[str], str, None] = None,
    ) -> ImplementationRecord:
        """Replace the record for this canonical control id, or append one."""
        canonical = coerce(control_id)
        status = to_status(status)
        roles = to_roles(roles)

        with self.editing(document_id) as document:
            record = ImplementationRecord(
                control_id=canonical,
                status=status,
                description=description or "",
                responsible_roles=roles,
                last_updated=self.clock(),
            )
            index = document.find(canonical)
            if index >= 0:
                document.implementations[index] = record
            else:
                document.implementations.append(record)
        return record

    def get_implementation(
        self,
        document_id: str,
        control_id: Union[str, ControlIdentifier],
    ) -> ImplementationRecord:
        canonical = coerce(control_id)
        document = self.get(document_id)
        index = document.find(canonical)
        if index < 0:
            raise ImplementationNotFound(document_id, canonical.hyphenated)
        return document.implementations[index]

    def list_implementations(
        self,
        document_id: str,
        status: Union[str, ImplementationStatus, None] = None,
    ) -> list[ImplementationRecord]:
        wanted = to_status(status) if status else None
        document = self.get(document_id)
        if wanted is None:
            return list(document.implementations)
        return [r for r in document.implementations if r.status == wanted]
