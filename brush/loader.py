# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Source unit loader.

A source unit is a Python file executed statement by statement:
- top-level `def`/`async def` statements are not executed; their literal text
  is handed to the registry as a symbol definition,
- every other statement runs with the unit's scope as `locals`, so it sees
  only published shims, its own variables and the unit helpers.

Two passes: all function definitions of the unit are collected (and hashed)
first, so a definition may reference one that appears later in the same file.
"""

from __future__ import annotations

import ast
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterable

from brush.exports import publish as publish_names
from brush.namespace import ModuleNamespace
from brush.registry import Registry, Symbol
from brush.rewrite import body_digest
from brush.scope import Scope, ScopeBuiltins

if TYPE_CHECKING:
	from brush.ref import ModuleRef
	from brush.resolver import Resolver

_DEF_NODES = (ast.FunctionDef, ast.AsyncFunctionDef)


def source_units(directory: Path) -> list[Path]:
	"""Top-level `*.py` files of a module, lexically ordered; `_*` and `test_*` are skipped."""
	return sorted(
		p
		for p in directory.iterdir()
		if p.is_file() and p.suffix == ".py" and not p.name.startswith(("_", "test_"))
	)


def definition_text(lines: list[str], node: ast.FunctionDef | ast.AsyncFunctionDef) -> str:
	"""Literal source of a top-level definition, decorators included, newline-terminated."""
	start = min([node.lineno, *(d.lineno for d in node.decorator_list)])
	text = "".join(lines[start - 1 : node.end_lineno])
	if not text.endswith("\n"):
		text += "\n"
	return text


class UnitContext:
	"""
	The four core operations as seen from one unit.

	`scope` is where the unit's statements run and where modules it requires
	publish; `target` is where the unit's own `publish` calls land (the
	importer's scope). `public` accumulates everything published, so the
	resolver can replay it for later importers.
	"""

	def __init__(
		self,
		*,
		registry: Registry,
		resolver: "Resolver",
		scope: Scope,
		target: Scope,
		module: str | None = None,
		public: dict[str, str] | None = None,
	) -> None:
		self.registry = registry
		self.resolver = resolver
		self.scope = scope
		self.target = target
		self.module = module
		self.public: dict[str, str] = public if public is not None else {}
		self.namespace = ModuleNamespace()

	def require(self, ref: "ModuleRef | str") -> Path:
		return self.resolver.resolve(ref, into=self.scope)

	def define(self, name: str, body: str, *, pending: dict[str, str] | None = None) -> Symbol:
		return self.registry.define(
			self.namespace.qualify(name),
			body,
			module=self.module,
			prefix=self.namespace.prefix,
			pending=pending,
		)

	def publish(self, names: Iterable[str] | str) -> frozenset[str]:
		bindings = publish_names(names, self.target, self.registry, qualify=self.namespace.qualify)
		self.public.update(bindings)
		return frozenset(bindings)

	def set_module(self, name: str | None) -> None:
		self.namespace.set_module(name)

	def unit_globals(self, *, filename: str, dunder_name: str) -> dict[str, Any]:
		return {
			"__builtins__": ScopeBuiltins(self.scope),
			"__name__": dunder_name,
			"__file__": filename,
			"require": self.require,
			"define": self.define,
			"publish": self.publish,
			"set_module": self.set_module,
		}

	def exec_source(self, source: str, *, filename: str = "<brush>", dunder_name: str = "__main__") -> None:
		tree = ast.parse(source, filename=filename)
		lines = source.splitlines(keepends=True)
		stmts = tree.body

		bodies: dict[int, str] = {}
		for idx, stmt in enumerate(stmts):
			if isinstance(stmt, _DEF_NODES):
				bodies[idx] = definition_text(lines, stmt)
		digests = {idx: body_digest(text) for idx, text in bodies.items()}

		g = self.unit_globals(filename=filename, dunder_name=dunder_name)
		try:
			for idx, stmt in enumerate(stmts):
				if idx in bodies:
					self.define(stmt.name, bodies[idx], pending=self._pending_after(stmts, digests, idx))
					continue
				code = compile(ast.Module(body=[stmt], type_ignores=[]), filename, "exec")
				exec(code, g, self.scope)
		finally:
			# The prefix never leaks past the unit that set it.
			self.namespace.set_module(None)

	@staticmethod
	def _pending_after(stmts: list[ast.stmt], digests: dict[int, str], idx: int) -> dict[str, str]:
		# Names this unit already defined keep their current binding.
		earlier = {stmts[i].name for i in digests if i < idx}
		pending: dict[str, str] = {}
		for later in sorted(i for i in digests if i > idx):
			name = stmts[later].name
			if name not in earlier:
				pending.setdefault(name, digests[later])
		return pending

	def exec_file(self, path: Path, *, dunder_name: str) -> None:
		self.exec_source(path.read_text(encoding="utf-8"), filename=str(path), dunder_name=dunder_name)
