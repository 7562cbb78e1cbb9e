"""Service facade: wires the components from configuration and exposes the
request surface 1:1 by method name.

Each handler takes a params dict (camelCase request field names) and
returns JSON-ready data. Core failures propagate as ``SspkitError``; mapping
them onto transport payloads is the caller's job.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from rich.console import Console

from .. import __version__
from ..compliance.baseline import BaselineResolver, ProfileCache
from ..compliance.catalog import CatalogAccessor
from ..compliance.extensions import ExtensionControls
from ..models.control import SearchFilter
from .config import CONFIG_DIR, get_effective_config
from .content import build_sample_ssp, seed_content
from .documents import DocumentStore
from .storage import BoundedContentStore, ContentStore, FileContentStore
from .validator import ComplianceValidator

console = Console(stderr=True)


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    return value


class ComplianceService:
    """All core components sharing one configuration and one profile cache."""

    def __init__(
        self,
        config: dict,
        content_store: Optional[ContentStore] = None,
        data_store: Optional[ContentStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.config = config
        timeout = float(config["storage"]["timeout_seconds"])

        self.content_store = BoundedContentStore(
            content_store or FileContentStore(Path(config["_content_root"])), timeout
        )
        self.data_store = BoundedContentStore(
            data_store or FileContentStore(Path(config["_data_root"])), timeout
        )

        self.profile_cache = ProfileCache()
        self.resolver = BaselineResolver(
            self.content_store,
            profile_dirs=config["profiles"].get("dirs"),
            strict_match=bool(config["profiles"].get("strict_match")),
            cache=self.profile_cache,
        )
        self.catalog = CatalogAccessor(self.content_store, config["content"]["catalog_key"])
        self.extensions = ExtensionControls(
            self.content_store, config["extensions"]["default_framework"]
        )
        self.documents = DocumentStore(
            self.data_store,
            self.resolver,
            prefix=config["data"]["ssp_prefix"],
            clock=clock,
            id_factory=id_factory,
        )
        self.validator = ComplianceValidator(self.documents, self.resolver)

        self.methods: dict[str, Callable[[dict], Any]] = {
            "getControl": self.get_control,
            "searchControls": self.search_controls,
            "getControlFamilies": self.get_control_families,
            "resolveBaseline": self.resolve_baseline,
            "createSSP": self.create_ssp,
            "getSSP": self.get_ssp,
            "listSSPs": self.list_ssps,
            "addControlImplementation": self.add_control_implementation,
            "getControlImplementation": self.get_control_implementation,
            "listControlImplementations": self.list_control_implementations,
            "validateSSP": self.validate_ssp,
            "getExtensionControl": self.get_extension_control,
            "searchExtensionControls": self.search_extension_controls,
            "getExtensionControlFamilies": self.get_extension_control_families,
            "getExtensionControlsByFamily": self.get_extension_controls_by_family,
        }

    @classmethod
    def from_project(cls, project_path: Path, cli_overrides: Optional[dict] = None, **kwargs) -> ComplianceService:
        return cls(get_effective_config(project_path, cli_overrides), **kwargs)

    def close(self) -> None:
        self.content_store.close()
        self.data_store.close()

    def invalidate_caches(self) -> None:
        self.profile_cache.clear()
        self.catalog.invalidate()
        self.extensions.invalidate()

    def dispatch(self, method: str, params: Optional[dict] = None) -> Any:
        """Invoke a request method by name. ``KeyError`` for unknown methods."""
        handler = self.methods[method]
        return handler(params or {})

    # -- catalog ---------------------------------------------------------

    def get_control(self, params: dict) -> dict:
        control = self.catalog.get_control(
            params.get("controlId"),
            include_enhancements=bool(params.get("includeEnhancements", False)),
        )
        return _dump(control)

    def search_controls(self, params: dict) -> list:
        catalog_config = self.config["catalog"]
        limit = int(params.get("limit") or catalog_config["search_limit"])
        limit = max(1, min(limit, int(catalog_config["max_search_limit"])))
        search_filter = SearchFilter(
            query=params.get("query"),
            family=params.get("family"),
            tier=params.get("baseline"),
            limit=limit,
        )
        restrict_to = None
        if search_filter.tier:
            restrict_to = self.resolver.resolve_required_controls(
                search_filter.tier, params.get("profileKind") or self.config["profiles"]["kind"]
            )
        return _dump(self.catalog.search(search_filter, restrict_to=restrict_to))

    def get_control_families(self, params: dict) -> list:
        return _dump(self.catalog.get_families())

    def resolve_baseline(self, params: dict) -> dict:
        profile = self.resolver.resolve_profile(
            params.get("securityLevel"),
            params.get("profileKind") or self.config["profiles"]["kind"],
        )
        data = profile.model_dump(mode="json")
        data["controls"] = [c.hyphenated for c in sorted(profile.controls)]
        return data

    # -- SSPs ------------------------------------------------------------

    def create_ssp(self, params: dict) -> dict:
        document = self.documents.create(
            title=params.get("title", ""),
            description=params.get("description", ""),
            tier=params.get("securityLevel"),
            document_id=params.get("systemId"),
            kind=params.get("profileKind") or self.config["profiles"]["kind"],
        )
        console.print(f"  [green]Created[/green] SSP {document.id} ({len(document.implementations)} controls)")
        return _dump(document)

    def get_ssp(self, params: dict) -> dict:
        return _dump(self.documents.get(params.get("sspId")))

    def list_ssps(self, params: dict) -> list:
        return _dump(self.documents.list())

    def add_control_implementation(self, params: dict) -> dict:
        record = self.documents.upsert_implementation(
            params.get("sspId"),
            params.get("controlId"),
            params.get("implementationStatus"),
            description=params.get("description", ""),
            roles=params.get("responsibleRoles") or [],
        )
        return _dump(record)

    def get_control_implementation(self, params: dict) -> dict:
        return _dump(self.documents.get_implementation(params.get("sspId"), params.get("controlId")))

    def list_control_implementations(self, params: dict) -> list:
        return _dump(self.documents.list_implementations(params.get("sspId"), params.get("status")))

    def validate_ssp(self, params: dict) -> dict:
        return _dump(self.validator.validate(params.get("sspId")))

    # -- extension controls ----------------------------------------------

    def get_extension_control(self, params: dict) -> dict:
        return self.extensions.get_control(params.get("controlId"), params.get("framework"))

    def search_extension_controls(self, params: dict) -> list:
        return self.extensions.search(
            id=params.get("id"),
            family_name=params.get("familyName"),
            keywords=params.get("keywords"),
            framework=params.get("framework"),
        )

    def get_extension_control_families(self, params: dict) -> list:
        return self.extensions.list_families(params.get("framework"))

    def get_extension_controls_by_family(self, params: dict) -> list:
        return self.extensions.controls_by_family(params.get("familyName"), params.get("framework"))


def initialize_project(
    project_path: Path,
    with_sample: bool = True,
    overwrite: bool = False,
    cli_overrides: Optional[dict] = None,
) -> ComplianceService:
    """Create .sspkit/config.yaml and seed sample content and data."""
    config_dir = project_path / CONFIG_DIR
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(
            "# sspkit project configuration\n"
            "\n"
            f"sspkit_version: \"{__version__}\"\n"
            "\n"
            "content:\n"
            "  path: oscal-content\n"
            "\n"
            "data:\n"
            "  path: data\n"
            "\n"
            "profiles:\n"
            "  kind: standard\n"
            "  strict_match: false\n",
            encoding="utf-8",
        )

    service = ComplianceService.from_project(project_path, cli_overrides)
    written = seed_content(service.content_store, overwrite=overwrite)
    for key in written:
        console.print(f"  [green]Wrote[/green] {key}")

    if with_sample:
        sample = build_sample_ssp(service.documents.clock())
        service.documents.import_document(sample)
        console.print(f"  [green]Wrote[/green] sample SSP {sample.id}")

    console.print(f"  [green]Initialized[/green] {CONFIG_DIR}/ in {project_path.name}")
    return service
