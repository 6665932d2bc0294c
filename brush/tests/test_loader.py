# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import ast
from pathlib import Path

import pytest

from brush.errors import UndefinedFunction
from brush.loader import definition_text, source_units
from brush.rewrite import body_digest


def test_top_level_defs_become_private_symbols(runtime) -> None:
	with pytest.raises(UndefinedFunction):
		runtime.exec_source(
			"""
def get():
	return 1

value = get()
""".lstrip()
		)
	assert "value" not in runtime.scope
	assert runtime.registry.is_tracked("get")


def test_forward_references_inside_one_unit(runtime) -> None:
	runtime.exec_source(
		"""
def first():
	return second() + 1

def second():
	return 41

publish({"first"})
answer = first()
""".lstrip()
	)
	assert runtime.scope["answer"] == 42
	first = runtime.registry.symbol(runtime.registry.binding("first"))
	second = runtime.registry.binding("second")
	assert dict(first.refs) == {"second": second}
	assert first.unresolved == ()


def test_later_statements_see_rebound_names(runtime) -> None:
	runtime.exec_source(
		"""
def get():
	return "old"

def early():
	return get()

def get():
	return "new"

def late():
	return get()

publish({"early", "late"})
""".lstrip()
	)
	assert runtime.call("early") == "old"
	assert runtime.call("late") == "new"


def test_decorators_are_part_of_the_definition(runtime) -> None:
	source = """
def shout(fn):
	def wrapper(*args):
		return fn(*args).upper()
	return wrapper

@shout
def hello(name):
	return "hello " + name

publish({"hello"})
""".lstrip()
	runtime.exec_source(source)
	assert runtime.call("hello", "bob") == "HELLO BOB"
	sym = runtime.registry.symbol(runtime.registry.binding("hello"))
	assert sym.raw_body.startswith("@shout\n")
	assert sym.raw_body.endswith('return "hello " + name\n')


def test_unit_helpers_and_dunder_name(runtime) -> None:
	runtime.exec_source(
		"""
define("twice", "def twice(x):\\n\\treturn x * 2\\n")
publish({"twice"})
if __name__ == "__main__":
	result = twice(21)
""".lstrip()
	)
	assert runtime.scope["result"] == 42


def test_nested_scopes_see_published_names(runtime) -> None:
	runtime.exec_source(
		"""
import json

def get():
	return "2020"

set_module("date")

def today():
	return "monday"

publish({"today"})
set_module(None)
publish({"get"})

from_genexp = list(get() for _ in range(2))
from_lambda = (lambda: get())()

class Report:
	def render(self):
		return json.dumps([get(), date.today()])

from_method = Report().render()
""".lstrip()
	)
	assert runtime.scope["from_genexp"] == ["2020", "2020"]
	assert runtime.scope["from_lambda"] == "2020"
	assert runtime.scope["from_method"] == '["2020", "monday"]'


def test_nested_scopes_still_hide_private_names(runtime) -> None:
	with pytest.raises(UndefinedFunction) as excinfo:
		runtime.exec_source(
			"""
def secret():
	return 1

value = (lambda: secret())()
""".lstrip()
		)
	assert excinfo.value.name == "secret"
	assert "value" not in runtime.scope


def test_unknown_names_in_nested_scopes_are_name_errors(runtime) -> None:
	with pytest.raises(NameError):
		runtime.exec_source("value = (lambda: nowhere())()\n")


def test_private_definition_does_not_hide_builtins(runtime) -> None:
	runtime.exec_source(
		"""
def len(x):
	return -1

set_module("str")

def upper(x):
	return x

n = len([1, 2, 3])
m = (lambda: len("ab"))()
s = str(5)
""".lstrip()
	)
	assert runtime.registry.is_tracked("len")
	assert runtime.registry.is_tracked("str.upper")
	assert (runtime.scope["n"], runtime.scope["m"], runtime.scope["s"]) == (3, 2, "5")


def test_set_module_does_not_leak_past_the_unit(runtime) -> None:
	runtime.exec_source(
		"""
set_module("date")

def get():
	return "d"

publish({"get"})
""".lstrip()
	)
	assert runtime.root.namespace.prefix is None
	assert runtime.registry.is_tracked("date.get")
	assert runtime.call("date.get") == "d"


def test_definition_text_is_literal_and_newline_terminated() -> None:
	source = "x = 1\n\n@deco(1)\ndef f(a):  # trailing\n\treturn a\ny = 2"
	tree = ast.parse(source)
	lines = source.splitlines(keepends=True)
	assert definition_text(lines, tree.body[1]) == "@deco(1)\ndef f(a):  # trailing\n\treturn a\n"

	at_eof = "def g():\n\treturn 1"
	node = ast.parse(at_eof).body[0]
	text = definition_text(at_eof.splitlines(keepends=True), node)
	assert text == "def g():\n\treturn 1\n"
	assert body_digest(text) == body_digest("def g():\n\treturn 1\n")


def test_source_units_are_lexical_and_skip_private_files(tmp_path: Path) -> None:
	for name in ["b.py", "a.py", "_private.py", "test_a.py", "notes.txt"]:
		(tmp_path / name).write_text("", encoding="utf-8")
	(tmp_path / "sub").mkdir()
	(tmp_path / "sub" / "c.py").write_text("", encoding="utf-8")
	assert [p.name for p in source_units(tmp_path)] == ["a.py", "b.py"]
