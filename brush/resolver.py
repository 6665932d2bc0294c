# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Module fetcher/resolver.

`resolve(ref, into=scope)`:
- validates the reference before any I/O,
- maps it to `<deps>/<owner>/<name>@<version>`, fetching on a cache miss,
- executes the module's source units (once per process); later resolves of the
  same reference, direct or transitive, only replay the module's published
  names into the new importer's scope.

MVP constraints:
- no inter-process lock; concurrent first fetches are settled by the atomic
  rename in `brush.fetch`,
- cache entries are never invalidated; a new version is a new key.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from brush.config import BrushConfig
from brush.errors import ImportCycle
from brush.exports import install_shims
from brush.fetch import FetchResult, fetch_into_cache
from brush.loader import UnitContext, source_units
from brush.lock_v0 import Lockfile
from brush.ref import ModuleRef, coerce_module_ref
from brush.scope import Scope

if TYPE_CHECKING:
	from brush.registry import Registry

logger = logging.getLogger(__name__)


@dataclass
class LoadedModule:
	ref: ModuleRef
	path: Path
	scope: Scope
	public: dict[str, str] = field(default_factory=dict)  # PublicSet with the digests it was published at
	units: list[Path] = field(default_factory=list)


class Resolver:
	def __init__(
		self,
		config: BrushConfig,
		registry: "Registry",
		*,
		client: httpx.Client | None = None,
	) -> None:
		self.config = config
		self.registry = registry
		self._client = client
		self._owns_client = client is None
		self._lock = Lockfile(config.lock_path, record=config.record_lock) if config.lock_path is not None else None
		self._loaded: dict[str, LoadedModule] = {}
		self._loading: list[str] = []
		self.fetched: list[FetchResult] = []

	@property
	def client(self) -> httpx.Client:
		if self._client is None:
			self._client = httpx.Client(timeout=self.config.timeout_s)
		return self._client

	def close(self) -> None:
		if self._owns_client and self._client is not None:
			self._client.close()
			self._client = None

	def cache_path(self, ref: ModuleRef) -> Path:
		return self.config.deps_dir / ref.owner / f"{ref.name}@{ref.version}"

	def loaded(self) -> dict[str, LoadedModule]:
		return dict(self._loaded)

	def ensure(self, ref: ModuleRef | str) -> Path:
		"""Make `ref` available on disk without executing it."""
		ref = coerce_module_ref(ref)
		dest = self.cache_path(ref)
		if dest.is_dir():
			logger.debug("cache hit for %s at %s", ref, dest)
			return dest
		result = fetch_into_cache(
			ref,
			dest,
			client=self.client,
			url_template=self.config.url_template,
			timeout_s=self.config.timeout_s,
			lock=self._lock,
		)
		self.fetched.append(result)
		return dest

	def resolve(self, ref: ModuleRef | str, *, into: Scope) -> Path:
		ref = coerce_module_ref(ref)
		key = str(ref)

		if key in self._loading:
			chain = " -> ".join([*self._loading[self._loading.index(key):], key])
			raise ImportCycle(message=f"import cycle: {chain}", ref=key)

		module = self._loaded.get(key)
		if module is not None:
			logger.debug("%s already loaded; republishing %d name(s)", key, len(module.public))
			install_shims(module.public, into, self.registry)
			return module.path

		path = self.ensure(ref)
		module = LoadedModule(ref=ref, path=path, scope=Scope(self.registry, label=key))
		self._loading.append(key)
		try:
			for unit in source_units(path):
				logger.debug("executing %s from %s", unit.name, key)
				ctx = UnitContext(
					registry=self.registry,
					resolver=self,
					scope=module.scope,
					target=into,
					module=key,
					public=module.public,
				)
				ctx.exec_file(unit, dunder_name=f"{key}:{unit.stem}")
				module.units.append(unit)
		finally:
			self._loading.pop()
		self._loaded[key] = module
		return path
