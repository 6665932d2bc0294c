# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Archive fetcher.

Downloads a release-tagged source archive and publishes it into its cache slot.

Pinned rules:
- the archive is extracted into a temporary sibling of the slot, stripping one
  leading container directory (like `tar --strip-components=1`),
- the slot is published with a single rename; if the slot appeared while we
  were fetching, the existing slot wins and our copy is discarded,
- on any failure neither the slot nor the temporary directory is left behind.
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import tarfile
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import httpx

from brush.errors import ExtractFailed, FetchFailed
from brush.lock_v0 import LockEntry, Lockfile, sha256_hex
from brush.ref import ModuleRef

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
	ref: str
	url: str
	cache_path: Path
	archive_sha256: str
	published: bool  # False when a concurrent fetch published the slot first

	def to_dict(self) -> dict[str, object]:
		return {
			"ref": self.ref,
			"url": self.url,
			"cache_path": str(self.cache_path),
			"archive_sha256": self.archive_sha256,
			"published": self.published,
		}


def archive_url(template: str, ref: ModuleRef) -> str:
	return template.format(owner=ref.owner, name=ref.name, version=ref.version)


def download_archive(client: httpx.Client, url: str, *, ref: str, timeout_s: float | None = None) -> bytes:
	kwargs = {"timeout": timeout_s} if timeout_s is not None else {}
	try:
		response = client.get(url, follow_redirects=True, **kwargs)
		response.raise_for_status()
	except httpx.HTTPStatusError as err:
		raise FetchFailed(
			message=f"archive download failed with HTTP {err.response.status_code}",
			ref=ref,
			url=url,
		) from err
	except httpx.HTTPError as err:
		raise FetchFailed(message=f"archive download failed: {err}", ref=ref, url=url) from err
	return response.content


def _strip_member_path(name: str, *, what: str) -> str | None:
	"""
	Drop the leading container directory from an archive member path.

	Returns None for the container itself. Rejects absolute and `..` paths.
	"""
	p = PurePosixPath(name.replace("\\", "/"))
	if p.is_absolute() or any(part == ".." for part in p.parts):
		raise ValueError(f"{what} escapes the extraction root: {name}")
	parts = [part for part in p.parts if part != "."]
	if len(parts) <= 1:
		return None
	return str(PurePosixPath(*parts[1:]))


def extract_archive(data: bytes, dest: Path, *, ref: str = "") -> int:
	"""
	Extract a gzip'd tar archive into `dest`, stripping one component.

	Returns the number of regular files written.
	"""
	try:
		with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as tar:
			members: list[tarfile.TarInfo] = []
			for member in tar.getmembers():
				stripped = _strip_member_path(member.name, what="archive member")
				if stripped is None:
					continue
				if member.islnk():
					link = _strip_member_path(member.linkname, what="archive hardlink target")
					if link is None:
						continue
					member.linkname = link
				member.name = stripped
				members.append(member)
			if not any(m.isfile() for m in members):
				raise ExtractFailed(message="archive contains no files", ref=ref, cache_path=str(dest))
			tar.extractall(dest, members=members, filter="data")
	except ExtractFailed:
		raise
	except (tarfile.TarError, OSError, ValueError, EOFError) as err:
		raise ExtractFailed(message=f"archive extraction failed: {err}", ref=ref, cache_path=str(dest)) from err
	return sum(1 for m in members if m.isfile())


def _discard(path: Path) -> None:
	shutil.rmtree(path, ignore_errors=True)


def fetch_into_cache(
	ref: ModuleRef,
	dest: Path,
	*,
	client: httpx.Client,
	url_template: str,
	timeout_s: float | None = None,
	lock: Lockfile | None = None,
) -> FetchResult:
	"""Download and publish `ref` into `dest` (which must not exist yet)."""
	ref_text = str(ref)
	url = archive_url(url_template, ref)
	locked = lock.get(ref_text) if lock is not None else None
	if locked is not None and locked.url != url:
		logger.debug("lockfile pins %s to %s", ref_text, locked.url)
		url = locked.url

	logger.info("Downloading %s", ref_text)
	data = download_archive(client, url, ref=ref_text, timeout_s=timeout_s)
	got_sha = f"sha256:{sha256_hex(data)}"
	if locked is not None and locked.archive_sha256 != got_sha:
		raise FetchFailed(
			message=f"archive sha256 mismatch: lockfile {locked.archive_sha256} != downloaded {got_sha}",
			reason_code="LOCK_SHA_MISMATCH",
			ref=ref_text,
			url=url,
			cache_path=str(dest),
		)

	dest.parent.mkdir(parents=True, exist_ok=True)
	tmp = Path(tempfile.mkdtemp(dir=dest.parent, prefix=f".{dest.name}.tmp-"))
	try:
		count = extract_archive(data, tmp, ref=ref_text)
		logger.debug("extracted %d file(s) for %s", count, ref_text)
		if dest.exists():
			logger.debug("cache slot for %s appeared concurrently; keeping it", ref_text)
			_discard(tmp)
			published = False
		else:
			try:
				os.rename(tmp, dest)
				published = True
			except OSError as err:
				if not dest.exists():
					raise ExtractFailed(
						message=f"could not publish cache slot: {err}",
						ref=ref_text,
						cache_path=str(dest),
					) from err
				_discard(tmp)
				published = False
	except BaseException:
		_discard(tmp)
		raise

	if lock is not None and locked is None:
		lock.add(LockEntry(ref=ref_text, url=url, archive_sha256=got_sha))
	return FetchResult(ref=ref_text, url=url, cache_path=dest, archive_sha256=got_sha, published=published)
