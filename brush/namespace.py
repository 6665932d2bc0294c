# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Module namespace layer.

Optional name prefixing for collision avoidance. Orthogonal to hashing: the
prefix changes which `by_name` key a definition is bound to and which public
name it is published as, never its digest.
"""

from __future__ import annotations

import re

from brush.errors import InvalidModuleName

_MODULE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$")


class ModuleNamespace:
	def __init__(self, prefix: str | None = None) -> None:
		self.prefix: str | None = None
		self.set_module(prefix)

	def set_module(self, name: str | None) -> None:
		if name is None or name == "":
			self.prefix = None
			return
		if not isinstance(name, str) or not _MODULE_NAME_RE.match(name):
			raise InvalidModuleName(message=f"module name must be a dotted identifier, got: {name!r}", name=str(name))
		self.prefix = name

	def qualify(self, name: str) -> str:
		if self.prefix is None:
			return name
		return f"{self.prefix}.{name}"
