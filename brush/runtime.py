# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Process-level wiring: one registry, one resolver and one root scope.

Nothing here is persisted; every run rebuilds the registry from scratch.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import httpx

from brush.config import BrushConfig, load_config
from brush.loader import UnitContext
from brush.ref import ModuleRef
from brush.registry import Registry, Symbol
from brush.resolver import Resolver
from brush.scope import Scope


class Runtime:
	def __init__(self, config: BrushConfig | None = None, *, client: httpx.Client | None = None) -> None:
		self.config = config if config is not None else load_config()
		self.registry = Registry(strict=self.config.strict)
		self.resolver = Resolver(self.config, self.registry, client=client)
		self.scope = Scope(self.registry, label="<root>")
		self.root = UnitContext(
			registry=self.registry,
			resolver=self.resolver,
			scope=self.scope,
			target=self.scope,
		)

	def __enter__(self) -> "Runtime":
		return self

	def __exit__(self, *exc: object) -> None:
		self.close()

	def close(self) -> None:
		self.resolver.close()

	# Core operations against the root scope.

	def resolve(self, ref: ModuleRef | str) -> Path:
		return self.root.require(ref)

	def define(self, name: str, body: str) -> Symbol:
		return self.root.define(name, body)

	def publish(self, names: Iterable[str] | str) -> frozenset[str]:
		return self.root.publish(names)

	def set_module(self, name: str | None) -> None:
		self.root.set_module(name)

	def call(self, name: str, *args: Any, **kwargs: Any) -> Any:
		return self.scope.call(name, *args, **kwargs)

	# Entry points.

	def exec_source(self, source: str, *, filename: str = "<brush>") -> None:
		self.root.exec_source(source, filename=filename, dunder_name="__main__")

	def run_script(self, path: Path) -> None:
		self.root.exec_file(path, dunder_name="__main__")
