# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Reference resolution for symbol bodies.

A body is parsed with `ast`; every free name it loads is resolved through a
caller-provided lookup into a digest, and the reference is replaced by the
digest's hash identifier. Names bound locally (parameters, assignments,
imports, nested definitions, comprehension targets, ...) are never touched, and
nothing inside string literals or comments is rewritten because we never
substitute text.
"""

from __future__ import annotations

import ast
import builtins
import hashlib
from dataclasses import dataclass
from typing import Callable, Optional

from brush.errors import InvalidDefinition

HASH_PREFIX = "_brush_"

_BUILTIN_NAMES = frozenset(dir(builtins))

_SCOPE_NODES = (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda, ast.ClassDef)
_COMPREHENSIONS = (ast.ListComp, ast.SetComp, ast.GeneratorExp, ast.DictComp)

Lookup = Callable[[str], Optional[str]]


def body_digest(body: str) -> str:
	"""Content address of a body: sha256 over its exact UTF-8 text."""
	return hashlib.sha256(body.encode("utf-8")).hexdigest()


def hash_ident(digest: str) -> str:
	return HASH_PREFIX + digest


def is_hash_ident(name: str) -> bool:
	return name.startswith(HASH_PREFIX)


def parse_definition(body: str, *, name: str) -> ast.FunctionDef | ast.AsyncFunctionDef:
	"""Parse `body`, which must hold exactly one (async) function definition."""
	try:
		tree = ast.parse(body)
	except SyntaxError as err:
		raise InvalidDefinition(message=f"definition does not parse: {err.msg} (line {err.lineno})", name=name) from err
	if len(tree.body) != 1 or not isinstance(tree.body[0], (ast.FunctionDef, ast.AsyncFunctionDef)):
		raise InvalidDefinition(message="definition body must be exactly one function definition", name=name)
	return tree.body[0]


class _BindingCollector(ast.NodeVisitor):
	"""Collect names bound in one scope without descending into nested scopes."""

	def __init__(self) -> None:
		self.names: set[str] = set()

	def visit_Name(self, node: ast.Name) -> None:
		if isinstance(node.ctx, (ast.Store, ast.Del)):
			self.names.add(node.id)

	def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
		self.names.add(node.name)

	def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> None:
		self.names.add(node.name)

	def visit_ClassDef(self, node: ast.ClassDef) -> None:
		self.names.add(node.name)

	def visit_Lambda(self, node: ast.Lambda) -> None:
		return

	def visit_Import(self, node: ast.Import) -> None:
		for alias in node.names:
			self.names.add(alias.asname or alias.name.split(".")[0])

	def visit_ImportFrom(self, node: ast.ImportFrom) -> None:
		for alias in node.names:
			if alias.name != "*":
				self.names.add(alias.asname or alias.name)

	def visit_ExceptHandler(self, node: ast.ExceptHandler) -> None:
		if node.name:
			self.names.add(node.name)
		self.generic_visit(node)

	def visit_Global(self, node: ast.Global) -> None:
		self.names.update(node.names)

	def visit_Nonlocal(self, node: ast.Nonlocal) -> None:
		self.names.update(node.names)

	def visit_MatchAs(self, node: ast.MatchAs) -> None:
		if node.name:
			self.names.add(node.name)
		self.generic_visit(node)

	def visit_MatchStar(self, node: ast.MatchStar) -> None:
		if node.name:
			self.names.add(node.name)

	def visit_MatchMapping(self, node: ast.MatchMapping) -> None:
		if node.rest:
			self.names.add(node.rest)
		self.generic_visit(node)

	def _visit_comprehension(self, node: ast.AST) -> None:
		# Only the first iterable runs in the enclosing scope; walrus targets bind there too.
		self.visit(node.generators[0].iter)
		for sub in ast.walk(node):
			if isinstance(sub, ast.NamedExpr) and isinstance(sub.target, ast.Name):
				self.names.add(sub.target.id)

	visit_ListComp = _visit_comprehension
	visit_SetComp = _visit_comprehension
	visit_GeneratorExp = _visit_comprehension
	visit_DictComp = _visit_comprehension


def _argument_names(args: ast.arguments) -> set[str]:
	out = {a.arg for a in (*args.posonlyargs, *args.args, *args.kwonlyargs)}
	if args.vararg is not None:
		out.add(args.vararg.arg)
	if args.kwarg is not None:
		out.add(args.kwarg.arg)
	return out


def scope_bindings(node: ast.AST) -> set[str]:
	"""Names bound directly in the scope introduced by `node`."""
	collector = _BindingCollector()
	if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.Lambda)):
		names = _argument_names(node.args)
		body = node.body if isinstance(node.body, list) else [node.body]
	elif isinstance(node, ast.ClassDef):
		names = set()
		body = node.body
	elif isinstance(node, _COMPREHENSIONS):
		names = set()
		body = [gen.target for gen in node.generators]
	else:
		raise TypeError(f"not a scope node: {type(node).__name__}")
	for stmt in body:
		collector.visit(stmt)
	return names | collector.names


def _dotted_chain(node: ast.AST) -> list[str] | None:
	parts: list[str] = []
	while isinstance(node, ast.Attribute):
		parts.append(node.attr)
		node = node.value
	if not isinstance(node, ast.Name):
		return None
	parts.append(node.id)
	parts.reverse()
	return parts


@dataclass(frozen=True)
class RewriteResult:
	rewritten: str
	refs: dict[str, str]  # referenced name -> digest
	unresolved: tuple[str, ...]


class _ReferenceRewriter(ast.NodeTransformer):
	def __init__(self, lookup: Lookup) -> None:
		self.lookup = lookup
		self.scopes: list[set[str]] = []
		self.refs: dict[str, str] = {}
		self.unresolved: set[str] = set()

	def _shadowed(self, name: str) -> bool:
		return any(name in scope for scope in self.scopes)

	def _resolve(self, name: str) -> str | None:
		digest = self.lookup(name)
		if digest is not None:
			self.refs[name] = digest
		return digest

	def visit_Name(self, node: ast.Name) -> ast.AST:
		if not isinstance(node.ctx, ast.Load) or self._shadowed(node.id) or is_hash_ident(node.id):
			return node
		digest = self._resolve(node.id)
		if digest is None:
			if node.id not in _BUILTIN_NAMES:
				self.unresolved.add(node.id)
			return node
		return ast.copy_location(ast.Name(id=hash_ident(digest), ctx=ast.Load()), node)

	def visit_Attribute(self, node: ast.Attribute) -> ast.AST:
		chain = _dotted_chain(node) if isinstance(node.ctx, ast.Load) else None
		if chain is not None and not self._shadowed(chain[0]):
			# Longest qualified name wins: `date.get.cache` tries `date.get.cache`, then `date.get`.
			for k in range(len(chain), 1, -1):
				digest = self._resolve(".".join(chain[:k]))
				if digest is None:
					continue
				out: ast.expr = ast.copy_location(ast.Name(id=hash_ident(digest), ctx=ast.Load()), node)
				for attr in chain[k:]:
					out = ast.copy_location(ast.Attribute(value=out, attr=attr, ctx=ast.Load()), node)
				if isinstance(out, ast.Attribute):
					out.ctx = node.ctx
				return out
		self.generic_visit(node)
		return node

	def _visit_arguments_outer(self, args: ast.arguments) -> None:
		args.defaults = [self.visit(d) for d in args.defaults]
		args.kw_defaults = [self.visit(d) if d is not None else None for d in args.kw_defaults]
		for a in (*args.posonlyargs, *args.args, *args.kwonlyargs, args.vararg, args.kwarg):
			if a is not None and a.annotation is not None:
				a.annotation = self.visit(a.annotation)

	def _visit_function(self, node: ast.FunctionDef | ast.AsyncFunctionDef) -> ast.AST:
		node.decorator_list = [self.visit(d) for d in node.decorator_list]
		self._visit_arguments_outer(node.args)
		if node.returns is not None:
			node.returns = self.visit(node.returns)
		self.scopes.append(scope_bindings(node))
		try:
			node.body = [self.visit(stmt) for stmt in node.body]
		finally:
			self.scopes.pop()
		return node

	def visit_FunctionDef(self, node: ast.FunctionDef) -> ast.AST:
		return self._visit_function(node)

	def visit_AsyncFunctionDef(self, node: ast.AsyncFunctionDef) -> ast.AST:
		return self._visit_function(node)

	def visit_Lambda(self, node: ast.Lambda) -> ast.AST:
		self._visit_arguments_outer(node.args)
		self.scopes.append(scope_bindings(node))
		try:
			node.body = self.visit(node.body)
		finally:
			self.scopes.pop()
		return node

	def visit_ClassDef(self, node: ast.ClassDef) -> ast.AST:
		node.decorator_list = [self.visit(d) for d in node.decorator_list]
		node.bases = [self.visit(b) for b in node.bases]
		node.keywords = [self.visit(k) for k in node.keywords]
		self.scopes.append(scope_bindings(node))
		try:
			node.body = [self.visit(stmt) for stmt in node.body]
		finally:
			self.scopes.pop()
		return node

	def _visit_comprehension(self, node: ast.AST) -> ast.AST:
		first = node.generators[0]
		first.iter = self.visit(first.iter)
		self.scopes.append(scope_bindings(node))
		try:
			for idx, gen in enumerate(node.generators):
				if idx:
					gen.iter = self.visit(gen.iter)
				gen.ifs = [self.visit(cond) for cond in gen.ifs]
			if isinstance(node, ast.DictComp):
				node.key = self.visit(node.key)
				node.value = self.visit(node.value)
			else:
				node.elt = self.visit(node.elt)
		finally:
			self.scopes.pop()
		return node

	visit_ListComp = _visit_comprehension
	visit_SetComp = _visit_comprehension
	visit_GeneratorExp = _visit_comprehension
	visit_DictComp = _visit_comprehension


def rewrite_definition(
	func: ast.FunctionDef | ast.AsyncFunctionDef,
	*,
	digest: str,
	lookup: Lookup,
) -> RewriteResult:
	"""
	Resolve every free reference in `func` and rename the function itself to its
	hash identifier. `func` is modified in place.
	"""
	rewriter = _ReferenceRewriter(lookup)
	rewriter.visit(func)
	func.name = hash_ident(digest)
	module = ast.Module(body=[func], type_ignores=[])
	ast.fix_missing_locations(module)
	return RewriteResult(
		rewritten=ast.unparse(module),
		refs=dict(sorted(rewriter.refs.items())),
		unresolved=tuple(sorted(rewriter.unresolved)),
	)
