"""Profile and catalog document loading.

Profiles are OSCAL-shaped documents (JSON or YAML) whose imports list the
control ids they include:

    {"profile": {"imports": [{"href": "...",
                              "include-controls": [{"with-ids": ["ac-1", "ac-2"]}]}]}}
"""

from __future__ import annotations

import json
from pathlib import PurePosixPath
from typing import Optional

import yaml

from ..core.storage import ContentStore
from ..errors import StorageUnavailable

PROFILE_SUFFIXES = (".json", ".yaml", ".yml")


def load_document(store: ContentStore, key: str) -> dict:
    """Read and parse one JSON/YAML content document.

    ``ContentNotFound`` propagates; unparseable content is a storage failure.
    """
    raw = store.read(key)
    try:
        text = raw.decode("utf-8-sig")
        if key.endswith(".json"):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise StorageUnavailable("parse", key, str(e)) from e
    if not isinstance(data, dict):
        raise StorageUnavailable("parse", key, "document root is not a mapping")
    return data


def get_profile_candidates(store: ContentStore, directory: str) -> list[str]:
    """List profile document keys under ``directory`` in stable order."""
    prefix = directory.strip("/")
    return sorted(
        key for key in store.list(prefix)
        if PurePosixPath(key).suffix.lower() in PROFILE_SUFFIXES
    )


def match_profiles_for_tier(candidates: list[str], tier_name: str) -> list[str]:
    """Candidates whose file name contains the tier name, case-insensitive."""
    needle = tier_name.lower()
    return [key for key in candidates if needle in PurePosixPath(key).name.lower()]


def get_profile_body(document: dict) -> dict:
    body = document.get("profile", document)
    return body if isinstance(body, dict) else {}


def get_profile_title(document: dict) -> str:
    metadata = get_profile_body(document).get("metadata") or {}
    return str(metadata.get("title", "")) if isinstance(metadata, dict) else ""


def extract_control_ids(document: dict) -> list[str]:
    """Collect every id listed by the profile's include-controls selections.

    Returns raw strings in document order; parsing and deduplication happen in
    the resolver.
    """
    ids: list[str] = []
    for imp in get_profile_body(document).get("imports", []) or []:
        if not isinstance(imp, dict):
            continue
        for selection in imp.get("include-controls", []) or []:
            if not isinstance(selection, dict):
                continue
            for control_id in selection.get("with-ids", []) or []:
                ids.append(control_id)
    return ids


def get_catalog_groups(document: dict) -> list[dict]:
    catalog = document.get("catalog", document)
    if not isinstance(catalog, dict):
        return []
    return [g for g in catalog.get("groups", []) or [] if isinstance(g, dict)]


def get_control_label(control: dict) -> Optional[str]:
    """Prefer the catalog's display label prop over its lowercase id."""
    for prop in control.get("props", []) or []:
        if isinstance(prop, dict) and prop.get("name") == "label" and prop.get("value"):
            return str(prop["value"])
    return control.get("id")


def get_control_statement(control: dict) -> str:
    for part in control.get("parts", []) or []:
        if isinstance(part, dict) and part.get("name") == "statement":
            return str(part.get("prose", ""))
    return ""
