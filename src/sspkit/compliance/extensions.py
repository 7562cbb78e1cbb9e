"""Extension controls: cloud-native implementation guidance per framework.

Guidance files come in two shapes, both supported:

    {"control_families": [{"name": "Access Control", "controls": [...]}]}
    {"controls": [{"id": "AC-2", "family": "Access Control", ...}]}
"""

from __future__ import annotations

import re
import threading
from typing import Optional

from ..core.storage import ContentNotFound, ContentStore
from ..errors import ControlNotFound, ExtensionNotFound, InvalidParameter, MalformedIdentifier
from ..utils.control_ids import parse
from .loader import load_document

DEFAULT_FRAMEWORK = "nist-800-53"


def extension_key(framework: str) -> str:
    return f"extensions/{framework}/cloud-native/cloud-native-controls.json"


def _same_control(a: str, b: str) -> bool:
    """Canonical comparison when both ids parse, else whitespace-free text."""
    try:
        return parse(a) == parse(b)
    except MalformedIdentifier:
        return re.sub(r"\s+", "", a).upper() == re.sub(r"\s+", "", b).upper()


def _text_filter(name: str, value: object) -> Optional[str]:
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise InvalidParameter(name, value, "a string")
    return value.lower()


def _iter_controls(data: dict, family_name: Optional[str] = None):
    """Yield (family name, control dict), optionally filtered by family substring."""
    needle = _text_filter("familyName", family_name)
    if data.get("control_families"):
        for family in data["control_families"]:
            name = family.get("name", "")
            if needle and needle not in name.lower():
                continue
            for control in family.get("controls", []) or []:
                yield name, control
    else:
        for control in data.get("controls", []) or []:
            name = control.get("family", "")
            if needle and name and needle not in name.lower():
                continue
            yield name, control


class ExtensionControls:
    """Lookup over extension control files, cached per framework."""

    def __init__(self, store: ContentStore, default_framework: str = DEFAULT_FRAMEWORK):
        self.store = store
        self.default_framework = default_framework
        self._cache: dict[str, dict] = {}
        self._lock = threading.Lock()

    def load(self, framework: Optional[str] = None) -> dict:
        framework = framework or self.default_framework
        with self._lock:
            if framework not in self._cache:
                key = extension_key(framework)
                try:
                    self._cache[framework] = load_document(self.store, key)
                except ContentNotFound:
                    raise ExtensionNotFound(framework, key) from None
            return self._cache[framework]

    def invalidate(self, framework: Optional[str] = None) -> None:
        with self._lock:
            if framework is None:
                self._cache.clear()
            else:
                self._cache.pop(framework, None)

    def get_control(self, control_id: str, framework: Optional[str] = None) -> dict:
        if not isinstance(control_id, str) or not control_id.strip():
            raise MalformedIdentifier(control_id)
        for _, control in _iter_controls(self.load(framework)):
            if _same_control(str(control.get("id", "")), control_id):
                return control
        raise ControlNotFound(control_id, catalog=extension_key(framework or self.default_framework))

    def list_families(self, framework: Optional[str] = None) -> list[str]:
        data = self.load(framework)
        if data.get("control_families"):
            return [f.get("name", "") for f in data["control_families"]]
        families: list[str] = []
        for control in data.get("controls", []) or []:
            name = control.get("family")
            if name and name not in families:
                families.append(name)
        return families

    def controls_by_family(self, family_name: str, framework: Optional[str] = None) -> list[dict]:
        needle = _text_filter("familyName", family_name)
        if needle is None:
            raise InvalidParameter("familyName", family_name, "a non-empty string")
        data = self.load(framework)
        if data.get("control_families"):
            # First family whose name contains the search text
            for family in data["control_families"]:
                if needle in family.get("name", "").lower():
                    return list(family.get("controls", []) or [])
            return []
        return [c for name, c in _iter_controls(data, family_name) if name]

    def search(
        self,
        id: Optional[str] = None,
        family_name: Optional[str] = None,
        keywords: Optional[str] = None,
        framework: Optional[str] = None,
    ) -> list[dict]:
        id_needle = _text_filter("id", id)
        keyword_needle = _text_filter("keywords", keywords)
        results: list[dict] = []
        for _, control in _iter_controls(self.load(framework), family_name):
            if id_needle and id_needle not in str(control.get("id", "")).lower():
                continue
            if keyword_needle:
                fields = (control.get("title"), control.get("description"), control.get("notes"))
                if not any(f and keyword_needle in str(f).lower() for f in fields):
                    continue
            results.append(control)
        return results
