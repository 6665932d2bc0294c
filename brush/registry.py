# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Content-addressed definition registry.

Two tables:
- `by_hash`: digest -> Symbol, append-only for the life of the process,
- `by_name`: name -> digest, last writer wins.

Defining a symbol resolves every name its body references into a digest (see
`brush.rewrite`) and compiles the rewritten function into a private hash space.
The plain name is bound nowhere: it is reachable only through its digest, an
export shim, or another symbol that already resolved it.
"""

from __future__ import annotations

import builtins
import linecache
import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from brush.errors import UndefinedFunction, UnresolvedReference
from brush.rewrite import body_digest, hash_ident, parse_definition, rewrite_definition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Symbol:
	"""An immutable, hash-identified unit. `name`/`module` are those of the first definer."""

	name: str
	module: str | None
	raw_body: str
	digest: str
	refs: Mapping[str, str]
	unresolved: tuple[str, ...]
	rewritten: str

	@property
	def ident(self) -> str:
		return hash_ident(self.digest)

	def to_dict(self) -> dict[str, Any]:
		return {
			"name": self.name,
			"module": self.module,
			"digest": self.digest,
			"refs": dict(self.refs),
			"unresolved": list(self.unresolved),
		}


class Registry:
	def __init__(self, *, strict: bool = False) -> None:
		self.strict = strict
		self._by_hash: dict[str, Symbol] = {}
		self._by_name: dict[str, str] = {}
		self._space: dict[str, Any] = {"__builtins__": builtins, "__name__": "brush.space"}

	def __len__(self) -> int:
		return len(self._by_hash)

	def __contains__(self, digest: object) -> bool:
		return digest in self._by_hash

	# Read-only inspection.

	def names(self) -> list[str]:
		return sorted(self._by_name)

	def binding(self, name: str) -> str | None:
		return self._by_name.get(name)

	def bindings(self) -> dict[str, str]:
		return dict(sorted(self._by_name.items()))

	def symbol(self, digest: str) -> Symbol | None:
		return self._by_hash.get(digest)

	def symbols(self) -> list[Symbol]:
		return [self._by_hash[d] for d in sorted(self._by_hash)]

	def definition(self, name: str) -> str | None:
		"""Rewritten source currently bound to `name`."""
		digest = self._by_name.get(name)
		return self._by_hash[digest].rewritten if digest is not None else None

	def is_tracked(self, name: str) -> bool:
		return name in self._by_name

	def has_prefix(self, prefix: str) -> bool:
		dotted = prefix + "."
		return any(name.startswith(dotted) for name in self._by_name)

	# Mutation.

	def _lookup_for(
		self,
		*,
		own_names: tuple[str, ...],
		digest: str,
		prefix: str | None,
		pending: Mapping[str, str],
	) -> Callable[[str], str | None]:
		def lookup(name: str) -> str | None:
			if name in own_names:
				return digest
			if name in pending:
				return pending[name]
			if prefix:
				found = self._by_name.get(f"{prefix}.{name}")
				if found is not None:
					return found
			return self._by_name.get(name)

		return lookup

	def define(
		self,
		name: str,
		body: str,
		*,
		module: str | None = None,
		prefix: str | None = None,
		pending: Mapping[str, str] | None = None,
	) -> Symbol:
		"""
		Register `body` under `name` and return its symbol.

		`pending` maps names the current unit defines later to their digests, so
		forward references inside one unit resolve like backward ones.
		"""
		digest = body_digest(body)
		existing = self._by_hash.get(digest)
		if existing is not None:
			self._by_name[name] = digest
			return existing

		func = parse_definition(body, name=name)
		result = rewrite_definition(
			func,
			digest=digest,
			lookup=self._lookup_for(
				own_names=(func.name, name),
				digest=digest,
				prefix=prefix,
				pending=pending or {},
			),
		)
		if result.unresolved:
			if self.strict:
				raise UnresolvedReference(
					message=f"unresolved reference(s): {', '.join(result.unresolved)}",
					name=name,
					digest=digest,
				)
			logger.warning("%s references undefined name(s): %s", name, ", ".join(result.unresolved))

		filename = f"<brush {name} {digest[:12]}>"
		code = compile(result.rewritten, filename, "exec")
		exec(code, self._space)
		lines = result.rewritten.splitlines(keepends=True)
		linecache.cache[filename] = (len(result.rewritten), None, lines, filename)

		sym = Symbol(
			name=name,
			module=module,
			raw_body=body,
			digest=digest,
			refs=result.refs,
			unresolved=result.unresolved,
			rewritten=result.rewritten,
		)
		self._by_hash[digest] = sym
		self._by_name[name] = digest
		logger.debug("defined %s -> %s", name, digest)
		return sym

	def function(self, digest: str) -> Callable[..., Any]:
		fn = self._space.get(hash_ident(digest))
		if fn is None:
			raise UndefinedFunction(message="no function registered for digest", digest=digest)
		return fn

	def invoke(self, digest: str, *args: Any, **kwargs: Any) -> Any:
		return self.function(digest)(*args, **kwargs)
