# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Module references.

Pinned grammar:

	owner/name@vMAJOR.MINOR.PATCH

The shape is parsed with a tiny lark grammar; the version token is parsed
loosely and then checked against the strict pattern so a malformed version is
reported as `InvalidVersion` rather than as a generic shape error. Both checks
happen before any I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from lark import Lark, Transformer
from lark.exceptions import UnexpectedInput

from brush.errors import InvalidModuleRef, InvalidVersion

VERSION_RE = re.compile(r"v[0-9]+\.[0-9]+\.[0-9]+")
SEGMENT_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.\-]*")

_REF_GRAMMAR = r"""
start: SEGMENT "/" SEGMENT "@" VERSION

SEGMENT: /[A-Za-z0-9][A-Za-z0-9_.\-]*/
VERSION: /[^\s]+/
"""

_REF_PARSER = Lark(_REF_GRAMMAR, parser="lalr", lexer="contextual")


@dataclass(frozen=True)
class ModuleRef:
	"""Identity of a versioned module; also the cache key."""

	owner: str
	name: str
	version: str

	def __str__(self) -> str:
		return f"{self.owner}/{self.name}@{self.version}"

	@property
	def slug(self) -> str:
		return f"{self.owner}/{self.name}"

	def to_dict(self) -> dict[str, str]:
		return {"owner": self.owner, "name": self.name, "version": self.version}


class _RefBuilder(Transformer):
	def start(self, items):
		owner, name, version = (str(t) for t in items)
		return ModuleRef(owner=owner, name=name, version=version)


def is_version(text: str) -> bool:
	return bool(VERSION_RE.fullmatch(text))


def check_version(ref: ModuleRef) -> ModuleRef:
	"""Raise `InvalidVersion` unless `ref.version` is strictly `vX.Y.Z`."""
	if not isinstance(ref.version, str) or not is_version(ref.version):
		raise InvalidVersion(
			message=f"invalid version specified during import: {ref.version!r} (expected vMAJOR.MINOR.PATCH)",
			ref=str(ref),
		)
	return ref


def check_segments(ref: ModuleRef) -> ModuleRef:
	"""Raise `InvalidModuleRef` unless owner and name are safe single path segments."""
	for segment in (ref.owner, ref.name):
		if not isinstance(segment, str) or not SEGMENT_RE.fullmatch(segment):
			raise InvalidModuleRef(
				message=f"module owner/name must start with a letter or digit, got: {segment!r}",
				ref=f"{ref.owner}/{ref.name}@{ref.version}",
			)
	return ref


def parse_module_ref(text: str) -> ModuleRef:
	"""
	Parse and validate `owner/name@vX.Y.Z`.

	Raises `InvalidModuleRef` for a bad shape and `InvalidVersion` for a bad
	version token.
	"""
	if not isinstance(text, str) or not text.strip():
		raise InvalidModuleRef(message="module reference must be a non-empty string", ref=str(text))
	try:
		tree = _REF_PARSER.parse(text.strip())
	except UnexpectedInput as err:
		raise InvalidModuleRef(
			message=f"module reference must look like owner/name@vX.Y.Z, got: {text!r}",
			ref=text,
		) from err
	return check_version(_RefBuilder().transform(tree))


def coerce_module_ref(ref: ModuleRef | str) -> ModuleRef:
	if isinstance(ref, ModuleRef):
		return check_version(check_segments(ref))
	return parse_module_ref(ref)
