"""Baseline resolution: which controls a tier requires.

Required control sets are read from OSCAL profile documents in the content
store, one profile per (tier, kind).
"""

from __future__ import annotations

import threading
from typing import Optional, Union

from ..core.storage import ContentNotFound, ContentStore
from ..errors import AmbiguousProfile, EmptyProfile, InvalidTier, MalformedIdentifier, ProfileNotFound
from ..models.baseline import BaselineProfile, ProfileKind, Tier
from ..models.control import ControlIdentifier
from ..utils.control_ids import parse
from .loader import extract_control_ids, get_profile_candidates, get_profile_title, load_document, match_profiles_for_tier

DEFAULT_PROFILE_DIRS: dict[str, str] = {
    ProfileKind.STANDARD.value: "profiles/baselines",
    ProfileKind.AGENCY_SPECIFIC.value: "profiles/fedramp",
}


def to_tier(value: Union[str, Tier]) -> Tier:
    """Coerce tier text (any case) to ``Tier``; ``InvalidTier`` otherwise."""
    if isinstance(value, Tier):
        return value
    if isinstance(value, str):
        try:
            return Tier(value.strip().upper())
        except ValueError:
            pass
    raise InvalidTier(value)


class ProfileCache:
    """Resolved profiles keyed by (tier, kind), alive as long as its owner."""

    def __init__(self) -> None:
        self._entries: dict[tuple[Tier, ProfileKind], BaselineProfile] = {}
        self._lock = threading.Lock()

    def get(self, tier: Tier, kind: ProfileKind) -> Optional[BaselineProfile]:
        with self._lock:
            return self._entries.get((tier, kind))

    def put(self, profile: BaselineProfile) -> None:
        with self._lock:
            self._entries[(profile.tier, profile.kind)] = profile

    def invalidate(self, tier: Optional[Tier] = None, kind: Optional[ProfileKind] = None) -> int:
        """Drop matching entries (all when both are None). Returns count dropped."""
        with self._lock:
            doomed = [
                key for key in self._entries
                if (tier is None or key[0] == tier) and (kind is None or key[1] == kind)
            ]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> None:
        self.invalidate()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class BaselineResolver:
    """Resolve required control sets from profile documents in a content store."""

    def __init__(
        self,
        store: ContentStore,
        profile_dirs: Optional[dict[str, str]] = None,
        strict_match: bool = False,
        cache: Optional[ProfileCache] = None,
    ):
        self.store = store
        self.profile_dirs = dict(DEFAULT_PROFILE_DIRS)
        if profile_dirs:
            self.profile_dirs.update(profile_dirs)
        self.strict_match = strict_match
        self.cache = cache if cache is not None else ProfileCache()

    def _to_kind(self, tier: Tier, kind: Union[str, ProfileKind]) -> ProfileKind:
        try:
            return ProfileKind(kind)
        except ValueError:
            raise ProfileNotFound(tier.value, kind) from None

    def locate_profile(self, tier: Tier, kind: ProfileKind) -> str:
        """Pick the profile document key for a tier by file-name substring."""
        directory = self.profile_dirs.get(kind.value)
        if not directory:
            raise ProfileNotFound(tier.value, kind.value)

        candidates = get_profile_candidates(self.store, directory)
        matches = match_profiles_for_tier(candidates, tier.value)
        if not matches:
            raise ProfileNotFound(tier.value, kind.value, directory=directory)
        if self.strict_match and len(matches) > 1:
            raise AmbiguousProfile(tier.value, kind.value, matches)
        return matches[0]

    def resolve_profile(
        self,
        tier: Union[str, Tier],
        kind: Union[str, ProfileKind] = ProfileKind.STANDARD,
    ) -> BaselineProfile:
        tier = to_tier(tier)
        kind = self._to_kind(tier, kind)

        cached = self.cache.get(tier, kind)
        if cached is not None:
            return cached

        key = self.locate_profile(tier, kind)
        try:
            document = load_document(self.store, key)
        except ContentNotFound:
            raise ProfileNotFound(tier.value, kind.value, source=key) from None

        controls: set[ControlIdentifier] = set()
        for raw in extract_control_ids(document):
            try:
                controls.add(parse(raw))
            except MalformedIdentifier:
                # One malformed entry fails the whole profile
                raise MalformedIdentifier(raw, source=key) from None

        if not controls:
            raise EmptyProfile(tier.value, kind.value, key)

        profile = BaselineProfile(
            tier=tier,
            kind=kind,
            source=key,
            title=get_profile_title(document),
            controls=frozenset(controls),
        )
        self.cache.put(profile)
        return profile

    def resolve_required_controls(
        self,
        tier: Union[str, Tier],
        kind: Union[str, ProfileKind] = ProfileKind.STANDARD,
    ) -> frozenset[ControlIdentifier]:
        return self.resolve_profile(tier, kind).controls

    def invalidate(self, tier: Union[str, Tier, None] = None, kind: Union[str, ProfileKind, None] = None) -> int:
        return self.cache.invalidate(
            to_tier(tier) if tier is not None else None,
            ProfileKind(kind) if kind is not None else None,
        )
