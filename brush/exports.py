# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Export shims.

Publishing is the only way a module's symbols become reachable by a friendly
name outside that module. A shim is pinned to the digest bound at publish time.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from brush.errors import PublishUnboundName

if TYPE_CHECKING:
	from brush.registry import Registry
	from brush.scope import Scope


class ExportShim:
	"""Forward every call to the hash-identified function; results and exceptions pass through unchanged."""

	__slots__ = ("name", "digest", "_registry")

	def __init__(self, name: str, digest: str, registry: "Registry") -> None:
		self.name = name
		self.digest = digest
		self._registry = registry

	def __call__(self, *args: Any, **kwargs: Any) -> Any:
		return self._registry.invoke(self.digest, *args, **kwargs)

	def __eq__(self, other: object) -> bool:
		if not isinstance(other, ExportShim):
			return NotImplemented
		return self.name == other.name and self.digest == other.digest

	def __hash__(self) -> int:
		return hash((self.name, self.digest))

	def __repr__(self) -> str:
		return f"<brush export {self.name} -> {self.digest[:12]}>"


def install_shims(bindings: Mapping[str, str], target: "Scope", registry: "Registry") -> None:
	for name, digest in sorted(bindings.items()):
		target[name] = ExportShim(name, digest, registry)


def publish(
	names: Iterable[str] | str,
	target: "Scope",
	registry: "Registry",
	*,
	qualify: Callable[[str], str] = lambda name: name,
) -> dict[str, str]:
	"""
	Expose `names` in `target` and return the published name -> digest map.

	All names are checked before any shim is installed.
	"""
	if isinstance(names, str):
		names = {names}
	bindings: dict[str, str] = {}
	for raw in sorted(set(names)):
		key = qualify(raw)
		digest = registry.binding(key)
		if digest is None:
			raise PublishUnboundName(message=f"cannot publish '{key}': no definition is bound to it", name=key)
		bindings[key] = digest
	install_shims(bindings, target, registry)
	return bindings
