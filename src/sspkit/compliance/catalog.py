"""Control catalog accessor.

Lookup and filtering over an OSCAL-shaped SP 800-53 catalog. The catalog is
read from the content store when present and otherwise from the sample
catalog bundled with the package.
"""

from __future__ import annotations

import json
import threading
from importlib import resources
from typing import Optional, Union

from ..core.storage import ContentNotFound, ContentStore
from ..errors import ControlNotFound, MalformedIdentifier
from ..models.control import ControlFamily, ControlIdentifier, ControlMetadata, SearchFilter
from ..utils.control_ids import coerce, parse
from .loader import get_catalog_groups, get_control_label, get_control_statement, load_document

DEFAULT_CATALOG_KEY = "catalogs/nist.gov/SP800-53/catalog.json"
BUNDLED_CATALOG = "catalog.json"

SP800_53_FAMILIES: tuple[ControlFamily, ...] = (
    ControlFamily(id="AC", title="Access Control"),
    ControlFamily(id="AT", title="Awareness and Training"),
    ControlFamily(id="AU", title="Audit and Accountability"),
    ControlFamily(id="CA", title="Assessment, Authorization, and Monitoring"),
    ControlFamily(id="CM", title="Configuration Management"),
    ControlFamily(id="CP", title="Contingency Planning"),
    ControlFamily(id="IA", title="Identification and Authentication"),
    ControlFamily(id="IR", title="Incident Response"),
    ControlFamily(id="MA", title="Maintenance"),
    ControlFamily(id="MP", title="Media Protection"),
    ControlFamily(id="PE", title="Physical and Environmental Protection"),
    ControlFamily(id="PL", title="Planning"),
    ControlFamily(id="PM", title="Program Management"),
    ControlFamily(id="PS", title="Personnel Security"),
    ControlFamily(id="PT", title="PII Processing and Transparency"),
    ControlFamily(id="RA", title="Risk Assessment"),
    ControlFamily(id="SA", title="System and Services Acquisition"),
    ControlFamily(id="SC", title="System and Communications Protection"),
    ControlFamily(id="SI", title="System and Information Integrity"),
)


def load_bundled_catalog() -> dict:
    data_pkg = resources.files("sspkit.data")
    return json.loads((data_pkg / BUNDLED_CATALOG).read_text(encoding="utf-8"))


class _CatalogIndex:
    """Parsed catalog: families in catalog order and controls by identifier."""

    def __init__(self, document: dict, source: str):
        self.source = source
        self.families: list[ControlFamily] = []
        self.controls: dict[ControlIdentifier, ControlMetadata] = {}
        self.children: dict[ControlIdentifier, list[ControlIdentifier]] = {}

        for group in get_catalog_groups(document):
            family_id = str(group.get("id", "")).upper()
            self.families.append(ControlFamily(id=family_id, title=str(group.get("title", ""))))
            for control in group.get("controls", []) or []:
                self._add(control, family_id, parent=None)

        if not self.families:
            self.families = list(SP800_53_FAMILIES)

    def _add(self, control: dict, family_id: str, parent: Optional[ControlIdentifier]) -> None:
        label = get_control_label(control)
        try:
            control_id = parse(label)
        except MalformedIdentifier:
            raise MalformedIdentifier(label, source=self.source) from None

        self.controls[control_id] = ControlMetadata(
            id=control_id,
            title=str(control.get("title", "")),
            description=get_control_statement(control),
            family=family_id or control_id.family,
        )
        if parent is not None:
            self.children.setdefault(parent, []).append(control_id)
        for child in control.get("controls", []) or []:
            self._add(child, family_id, parent=control_id)


class CatalogAccessor:
    """Read-only access to control families and control metadata."""

    def __init__(self, store: Optional[ContentStore] = None, catalog_key: str = DEFAULT_CATALOG_KEY):
        self.store = store
        self.catalog_key = catalog_key
        self._index: Optional[_CatalogIndex] = None
        self._lock = threading.Lock()

    def _load(self) -> _CatalogIndex:
        with self._lock:
            if self._index is None:
                document: Optional[dict] = None
                source = self.catalog_key
                if self.store is not None:
                    try:
                        document = load_document(self.store, self.catalog_key)
                    except ContentNotFound:
                        document = None
                if document is None:
                    document = load_bundled_catalog()
                    source = f"bundled:{BUNDLED_CATALOG}"
                self._index = _CatalogIndex(document, source)
            return self._index

    @property
    def source(self) -> str:
        return self._load().source

    def invalidate(self) -> None:
        with self._lock:
            self._index = None

    def get_families(self) -> list[ControlFamily]:
        return list(self._load().families)

    def get_control(
        self,
        control_id: Union[str, ControlIdentifier],
        include_enhancements: bool = False,
    ) -> ControlMetadata:
        canonical = coerce(control_id)
        index = self._load()
        control = index.controls.get(canonical)
        if control is None:
            raise ControlNotFound(canonical.hyphenated, catalog=index.source)
        if include_enhancements:
            enhancements = sorted(index.children.get(canonical, []), key=ControlIdentifier.sort_key)
            return control.model_copy(update={"enhancements": enhancements})
        return control

    def all_controls(self) -> list[ControlMetadata]:
        index = self._load()
        return [index.controls[k] for k in sorted(index.controls, key=ControlIdentifier.sort_key)]

    def search(
        self,
        search_filter: Optional[SearchFilter] = None,
        restrict_to: Optional[frozenset[ControlIdentifier]] = None,
    ) -> list[ControlMetadata]:
        """Filter controls, ordered canonically and truncated to the filter's limit."""
        search_filter = search_filter or SearchFilter()
        query = (search_filter.query or "").strip().lower()
        family = (search_filter.family or "").strip().upper()

        results: list[ControlMetadata] = []
        for control in self.all_controls():
            if family and control.family.upper() != family:
                continue
            if restrict_to is not None and control.id not in restrict_to:
                continue
            if query:
                haystacks = (
                    control.id.hyphenated.lower(),
                    control.id.dotted.lower(),
                    control.title.lower(),
                )
                if not any(query in h for h in haystacks):
                    continue
            results.append(control)
            if len(results) >= search_filter.limit:
                break
        return results
