# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import io
import tarfile
from pathlib import Path

import httpx
import pytest

from brush.config import BrushConfig
from brush.fetch import archive_url
from brush.ref import parse_module_ref
from brush.runtime import Runtime

URL_TEMPLATE = "https://modules.test/{owner}/{name}/archive/{version}.tar.gz"


def make_archive(files: dict[str, str], *, top: str = "pkg-main") -> bytes:
	"""Build a gzip'd tarball shaped like a release archive: one container dir."""
	buf = io.BytesIO()
	with tarfile.open(fileobj=buf, mode="w:gz") as tar:
		root = tarfile.TarInfo(top)
		root.type = tarfile.DIRTYPE
		root.mode = 0o755
		tar.addfile(root)
		for rel, text in sorted(files.items()):
			data = text.encode("utf-8")
			info = tarfile.TarInfo(f"{top}/{rel}")
			info.size = len(data)
			info.mode = 0o644
			tar.addfile(info, io.BytesIO(data))
	return buf.getvalue()


class FakeRemote:
	"""In-memory release host behind `httpx.MockTransport`."""

	def __init__(self) -> None:
		self.archives: dict[str, tuple[int, bytes]] = {}
		self.requests: list[str] = []
		self.on_request = None

	def url(self, ref: str) -> str:
		return archive_url(URL_TEMPLATE, parse_module_ref(ref))

	def add(self, ref: str, files: dict[str, str]) -> str:
		return self.add_raw(ref, make_archive(files))

	def add_raw(self, ref: str, data: bytes, *, status: int = 200) -> str:
		url = self.url(ref)
		self.archives[url] = (status, data)
		return url

	def requests_for(self, ref: str) -> int:
		return self.requests.count(self.url(ref))

	def handler(self, request: httpx.Request) -> httpx.Response:
		url = str(request.url)
		self.requests.append(url)
		if self.on_request is not None:
			self.on_request(url)
		status, data = self.archives.get(url, (404, b"not found"))
		return httpx.Response(status, content=data)

	def client(self) -> httpx.Client:
		return httpx.Client(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def remote() -> FakeRemote:
	return FakeRemote()


@pytest.fixture
def deps_dir(tmp_path: Path) -> Path:
	return tmp_path / "deps"


@pytest.fixture
def config(deps_dir: Path) -> BrushConfig:
	return BrushConfig(deps_dir=deps_dir, url_template=URL_TEMPLATE)


@pytest.fixture
def runtime(config: BrushConfig, remote: FakeRemote):
	rt = Runtime(config, client=remote.client())
	yield rt
	rt.close()


@pytest.fixture
def archive():
	return make_archive
