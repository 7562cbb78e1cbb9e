"""Error taxonomy for sspkit.

Every failure the core raises is an ``SspkitError`` carrying a stable ``kind``
and the context (offending input, document id, control id) a caller needs to
act on it. Nothing in the core retries.
"""

from __future__ import annotations


class SspkitError(Exception):
    """Base class for all typed core failures."""

    kind = "SspkitError"

    def __init__(self, message: str, **context: object):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }


class MalformedIdentifier(SspkitError):
    kind = "MalformedIdentifier"

    def __init__(self, text: object, source: str | None = None):
        detail = f" in {source}" if source else ""
        super().__init__(f"Invalid control ID format{detail}: {text!r}", input=text, source=source)
        self.text = text


class ControlNotFound(SspkitError):
    kind = "ControlNotFound"

    def __init__(self, control_id: object, catalog: str | None = None):
        super().__init__(f"Control not found: {control_id}", control_id=control_id, catalog=catalog)
        self.control_id = control_id


class ProfileNotFound(SspkitError):
    kind = "ProfileNotFound"

    def __init__(self, tier: object, kind: object, message: str | None = None, **context: object):
        super().__init__(
            message or f"No {kind} profile found for tier {tier}",
            tier=tier,
            profile_kind=kind,
            **context,
        )
        self.tier = tier
        self.profile_kind = kind


class AmbiguousProfile(ProfileNotFound):
    kind = "AmbiguousProfile"

    def __init__(self, tier: object, kind: object, candidates: list[str]):
        super().__init__(
            tier,
            kind,
            message=f"{len(candidates)} {kind} profiles match tier {tier}: {', '.join(candidates)}",
            candidates=", ".join(candidates),
        )
        self.candidates = candidates


class EmptyProfile(SspkitError):
    kind = "EmptyProfile"

    def __init__(self, tier: object, kind: object, source: str):
        super().__init__(
            f"Profile {source} for tier {tier} lists no controls",
            tier=tier,
            profile_kind=kind,
            source=source,
        )
        self.source = source


class InvalidTier(SspkitError):
    kind = "InvalidTier"

    def __init__(self, tier: object):
        super().__init__(
            f"Invalid security level: {tier}. Must be one of: LOW, MODERATE, HIGH",
            tier=tier,
        )
        self.tier = tier


class InvalidStatus(SspkitError):
    kind = "InvalidStatus"

    def __init__(self, status: object, allowed: list[str]):
        super().__init__(
            f"Invalid implementation status: {status}. Must be one of: {', '.join(allowed)}",
            status=status,
        )
        self.status = status


class DocumentNotFound(SspkitError):
    kind = "DocumentNotFound"

    def __init__(self, document_id: object):
        super().__init__(f"SSP not found: {document_id}", document_id=document_id)
        self.document_id = document_id


class InvalidDocumentId(SspkitError):
    kind = "InvalidDocumentId"

    def __init__(self, document_id: object):
        super().__init__(
            f"Invalid SSP id {document_id!r}: use letters, digits, '.', '_' or '-'",
            document_id=document_id,
        )
        self.document_id = document_id


class ImplementationNotFound(SspkitError):
    kind = "ImplementationNotFound"

    def __init__(self, document_id: object, control_id: object):
        super().__init__(
            f"Control implementation not found: {control_id} in SSP {document_id}",
            document_id=document_id,
            control_id=control_id,
        )
        self.document_id = document_id
        self.control_id = control_id


class ExtensionNotFound(SspkitError):
    kind = "ExtensionNotFound"

    def __init__(self, framework: str, key: str):
        super().__init__(
            f"No extension controls for framework {framework} at {key}",
            framework=framework,
            key=key,
        )
        self.framework = framework


class StorageUnavailable(SspkitError):
    kind = "StorageUnavailable"

    def __init__(self, operation: str, key: str, reason: str):
        super().__init__(
            f"Storage {operation} failed for {key}: {reason}",
            operation=operation,
            key=key,
        )
        self.operation = operation
        self.key = key


class InvalidParameter(SspkitError):
    kind = "InvalidParameter"

    def __init__(self, name: str, value: object, expected: str):
        super().__init__(
            f"Invalid {name}: {value!r}. Expected {expected}",
            parameter=name,
            value=value,
        )
        self.name = name
        self.value = value
