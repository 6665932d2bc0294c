# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Brush lockfile (v0).

Records the exact archive bytes (sha256) each module reference resolved to, so
a later fetch into an empty cache reproduces the same sources or fails loudly.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from brush.errors import LockInvalid
from brush.ref import parse_module_ref


def sha256_hex(data: bytes) -> str:
	return hashlib.sha256(data).hexdigest()


def canonical_json_bytes(obj: Any) -> bytes:
	"""Deterministic JSON: UTF-8, sorted keys, no insignificant whitespace."""
	return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":")).encode("utf-8")


@dataclass(frozen=True)
class LockEntry:
	ref: str  # "owner/name@vX.Y.Z"
	url: str
	archive_sha256: str  # "sha256:<hex>" of the downloaded archive bytes


def _load_lock_json(path: Path) -> dict[str, Any]:
	try:
		data = json.loads(path.read_text(encoding="utf-8"))
	except (OSError, ValueError) as err:
		raise LockInvalid(message=f"unreadable lockfile: {err}", path=str(path)) from err
	if not isinstance(data, dict):
		raise LockInvalid(message="lockfile must be a JSON object", path=str(path))
	if data.get("format") != "brush-lock" or data.get("version") != 0:
		raise LockInvalid(message="unsupported lockfile format/version (upgrade brush?)", path=str(path))
	unknown_top = sorted(set(data.keys()) - {"format", "version", "modules"})
	if unknown_top:
		raise LockInvalid(message=f"lockfile has unknown top-level fields: {', '.join(unknown_top)}", path=str(path))
	return data


def load_lock_entries_v0(path: Path) -> dict[str, LockEntry]:
	"""Load a lockfile; a missing file is an empty lock."""
	if not path.exists():
		return {}
	data = _load_lock_json(path)
	mods = data.get("modules")
	if not isinstance(mods, dict):
		raise LockInvalid(message="lockfile modules must be an object", path=str(path))

	out: dict[str, LockEntry] = {}
	for ref_text, raw in mods.items():
		if not isinstance(raw, dict):
			raise LockInvalid(message=f"lockfile entry for '{ref_text}' must be an object", path=str(path), ref=str(ref_text))
		# Keys must themselves be valid references.
		ref = parse_module_ref(ref_text)
		url = raw.get("url")
		sha = raw.get("archive_sha256")
		if not isinstance(url, str) or not url:
			raise LockInvalid(message=f"lockfile entry for '{ref_text}' is missing url", path=str(path), ref=ref_text)
		if not isinstance(sha, str) or not sha.startswith("sha256:"):
			raise LockInvalid(
				message=f"lockfile entry for '{ref_text}' is missing archive_sha256",
				path=str(path),
				ref=ref_text,
			)
		out[str(ref)] = LockEntry(ref=str(ref), url=url, archive_sha256=sha)
	return out


def save_lock(path: Path, entries: dict[str, LockEntry]) -> None:
	obj = {
		"format": "brush-lock",
		"version": 0,
		"modules": {
			key: {"url": e.url, "archive_sha256": e.archive_sha256}
			for key, e in sorted(entries.items())
		},
	}
	path.parent.mkdir(parents=True, exist_ok=True)
	tmp = path.with_name(path.name + f".tmp.{os.getpid()}")
	tmp.write_bytes(canonical_json_bytes(obj))
	os.replace(tmp, path)


class Lockfile:
	"""In-memory view of a lockfile with write-through recording."""

	def __init__(self, path: Path, *, record: bool = False) -> None:
		self.path = path
		self.record = record
		self.entries = load_lock_entries_v0(path)

	def get(self, ref: str) -> LockEntry | None:
		return self.entries.get(ref)

	def add(self, entry: LockEntry) -> None:
		if not self.record:
			return
		self.entries[entry.ref] = entry
		save_lock(self.path, self.entries)
