# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Brush error taxonomy.

Every failure the core can raise is a `BrushError` carrying a stable
`reason_code` plus whatever context is known at the raise site. The core never
retries or recovers; errors propagate to the caller (the CLI renders them).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class BrushError(Exception):
	"""
	A structured, serializable error for brush.

	Subclasses only pin `reason_code`; context fields are shared and read-only by
	convention. Not frozen: `contextlib` assigns `__traceback__` on re-raise.
	"""

	message: str
	reason_code: str = "BRUSH_ERROR"
	ref: str | None = None
	name: str | None = None
	digest: str | None = None
	url: str | None = None
	cache_path: str | None = None
	path: str | None = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"ref": self.ref,
			"name": self.name,
			"digest": self.digest,
			"url": self.url,
			"cache_path": self.cache_path,
			"path": self.path,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.ref:
			parts.append(f"ref={self.ref}")
		if self.name:
			parts.append(f"name={self.name}")
		if self.digest:
			parts.append(f"digest={self.digest}")
		if self.url:
			parts.append(f"url={self.url}")
		if self.cache_path:
			parts.append(f"cache_path={self.cache_path}")
		if self.path:
			parts.append(f"path={self.path}")
		return " ".join(parts)


@dataclass(eq=False)
class InvalidVersion(BrushError):
	reason_code: str = "INVALID_VERSION"


@dataclass(eq=False)
class InvalidModuleRef(BrushError):
	reason_code: str = "INVALID_MODULE_REF"


@dataclass(eq=False)
class InvalidModuleName(BrushError):
	reason_code: str = "INVALID_MODULE_NAME"


@dataclass(eq=False)
class FetchFailed(BrushError):
	reason_code: str = "FETCH_FAILED"


@dataclass(eq=False)
class ExtractFailed(BrushError):
	reason_code: str = "EXTRACT_FAILED"


@dataclass(eq=False)
class LockInvalid(BrushError):
	reason_code: str = "LOCK_INVALID"


@dataclass(eq=False)
class ImportCycle(BrushError):
	reason_code: str = "IMPORT_CYCLE"


@dataclass(eq=False)
class UndefinedFunction(BrushError):
	reason_code: str = "UNDEFINED_FUNCTION"


@dataclass(eq=False)
class PublishUnboundName(BrushError):
	reason_code: str = "PUBLISH_UNBOUND_NAME"


@dataclass(eq=False)
class InvalidDefinition(BrushError):
	reason_code: str = "INVALID_DEFINITION"


@dataclass(eq=False)
class UnresolvedReference(BrushError):
	reason_code: str = "UNRESOLVED_REFERENCE"
