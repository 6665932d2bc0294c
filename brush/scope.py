# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Scopes: the namespaces script code runs in.

A scope is the `locals` mapping of every top-level statement executed by the
loader. It holds ordinary variables plus export shims. Looking up a name that
the registry tracks but that was never published into this scope raises
`UndefinedFunction` instead of falling through to globals; builtin names always
fall through.
"""

from __future__ import annotations

import builtins
from collections.abc import MutableMapping
from typing import TYPE_CHECKING, Any, Iterator

from brush.errors import UndefinedFunction

if TYPE_CHECKING:
	from brush.registry import Registry

_BUILTIN_NAMES = frozenset(dir(builtins))


class NamespaceView:
	"""Attribute access over dotted names: `date.get` -> scope["date.get"]."""

	__slots__ = ("_scope", "_prefix")

	def __init__(self, scope: "Scope", prefix: str) -> None:
		self._scope = scope
		self._prefix = prefix

	def __getattr__(self, attr: str) -> Any:
		try:
			return self._scope[f"{self._prefix}.{attr}"]
		except KeyError:
			raise AttributeError(f"namespace '{self._prefix}' has no attribute '{attr}'") from None

	def __dir__(self) -> list[str]:
		dotted = self._prefix + "."
		return sorted({k[len(dotted):].split(".")[0] for k in self._scope if k.startswith(dotted)})

	def __repr__(self) -> str:
		return f"<brush namespace {self._prefix}>"


class Scope(MutableMapping):
	def __init__(self, registry: "Registry", *, label: str = "<root>") -> None:
		self.registry = registry
		self.label = label
		self._entries: dict[str, Any] = {}

	def __getitem__(self, key: str) -> Any:
		try:
			return self._entries[key]
		except KeyError:
			pass
		dotted = key + "."
		if any(k.startswith(dotted) for k in self._entries):
			return NamespaceView(self, key)
		# Another module's private `len` or `str.*` prefix never hides a builtin.
		if key in _BUILTIN_NAMES:
			raise KeyError(key)
		if self.registry.has_prefix(key):
			return NamespaceView(self, key)
		if self.registry.is_tracked(key):
			raise UndefinedFunction(
				message=f"'{key}' is private to the module that defined it (not published into {self.label})",
				name=key,
			)
		raise KeyError(key)

	def __setitem__(self, key: str, value: Any) -> None:
		self._entries[key] = value

	def __delitem__(self, key: str) -> None:
		del self._entries[key]

	def __contains__(self, key: object) -> bool:
		return key in self._entries

	def __iter__(self) -> Iterator[str]:
		return iter(self._entries)

	def __len__(self) -> int:
		return len(self._entries)

	def __repr__(self) -> str:
		return f"<brush scope {self.label} ({len(self._entries)} entries)>"

	def shims(self) -> dict[str, Any]:
		from brush.exports import ExportShim

		return {k: v for k, v in sorted(self._entries.items()) if isinstance(v, ExportShim)}

	def call(self, name: str, *args: Any, **kwargs: Any) -> Any:
		"""Invoke `name` as script code would; unknown names are `UndefinedFunction`."""
		try:
			fn = self[name]
		except KeyError:
			raise UndefinedFunction(message=f"'{name}' is not defined in {self.label}", name=name) from None
		return fn(*args, **kwargs)


class ScopeBuiltins(dict):
	"""
	`__builtins__` for unit code.

	Top-level statements see the scope as their locals, but code in nested
	scopes (lambdas, generator expressions, methods) only consults globals and
	builtins. Routing the builtins lookup through the scope gives both the same
	view: published shims, `UndefinedFunction` for private names, then the real
	builtins. A dict subclass keeps the interpreter's direct `__import__` lookup
	working.
	"""

	def __init__(self, scope: Scope) -> None:
		super().__init__(vars(builtins))
		self.scope = scope

	def __getitem__(self, key: str) -> Any:
		try:
			return self.scope[key]
		except KeyError:
			return dict.__getitem__(self, key)
