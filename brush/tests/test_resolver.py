# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import pytest

from brush.errors import FetchFailed, ImportCycle, InvalidModuleRef, InvalidVersion, UndefinedFunction
from brush.ref import ModuleRef
from brush.runtime import Runtime

YEAR = "acme/year@v1.0.0"
APP = "acme/app@v2.1.0"

YEAR_SRC = """\
def get():
    return "2020"

publish("get")
"""


def test_second_resolve_is_cache_only(runtime: Runtime, remote) -> None:
	remote.add(YEAR, {"year.py": YEAR_SRC})
	first = runtime.resolve(YEAR)
	second = runtime.resolve(YEAR)
	assert first == second
	assert remote.requests_for(YEAR) == 1


def test_warm_cache_needs_no_network(config, remote) -> None:
	remote.add(YEAR, {"year.py": YEAR_SRC})
	with Runtime(config, client=remote.client()) as rt:
		rt.resolve(YEAR)
	with Runtime(config, client=remote.client()) as rt:
		rt.resolve(YEAR)
		assert rt.call("get") == "2020"
	assert remote.requests_for(YEAR) == 1


def test_bad_version_fails_before_io(runtime: Runtime, remote, deps_dir) -> None:
	with pytest.raises(InvalidVersion):
		runtime.resolve(ModuleRef(owner="x", name="y", version="1.0"))
	with pytest.raises(InvalidVersion):
		runtime.resolve("x/y@1.0")
	assert remote.requests == []
	assert not deps_dir.exists()


def test_private_name_never_collides_with_published_one(runtime: Runtime, remote) -> None:
	remote.add(YEAR, {"year.py": YEAR_SRC})
	runtime.exec_source(
		'def get():\n'
		'    return "private"\n'
		'\n'
		f'require("{YEAR}")\n'
		'result = get()\n'
	)
	assert runtime.scope["result"] == "2020"


def test_module_importing_module_sees_only_published_name(runtime: Runtime, remote) -> None:
	remote.add(YEAR, {"year.py": YEAR_SRC})
	remote.add(
		APP,
		{
			"app.py": (
				'def get():\n'
				'    return "private"\n'
				'\n'
				f'require("{YEAR}")\n'
				'value = get()\n'
				'\n'
				'def banner():\n'
				'    return "app"\n'
				'\n'
				'publish("banner")\n'
			),
		},
	)
	runtime.resolve(APP)
	assert runtime.resolver.loaded()[APP].scope["value"] == "2020"
	assert runtime.call("banner") == "app"
	# `get` was published into app's scope, not the root one.
	with pytest.raises(UndefinedFunction):
		runtime.call("get")


def test_direct_and_transitive_import_define_once(runtime: Runtime, remote) -> None:
	remote.add(YEAR, {"year.py": YEAR_SRC})
	remote.add(
		APP,
		{"app.py": f'require("{YEAR}")\n\ndef banner():\n    return "app"\n\npublish("banner")\n'},
	)
	runtime.resolve(APP)
	size = len(runtime.registry)
	runtime.resolve(YEAR)
	runtime.resolve(APP)
	assert len(runtime.registry) == size
	assert remote.requests_for(YEAR) == 1
	assert remote.requests_for(APP) == 1
	assert runtime.call("get") == "2020"
	assert runtime.call("banner") == "app"


def test_units_run_in_lexical_order(runtime: Runtime, remote) -> None:
	remote.add(
		APP,
		{
			"b.py": 'order.append("b")\n',
			"a.py": 'order = []\norder.append("a")\n',
			"_private.py": 'raise RuntimeError("never executed")\n',
			"test_app.py": 'raise RuntimeError("never executed")\n',
		},
	)
	runtime.resolve(APP)
	module = runtime.resolver.loaded()[APP]
	assert module.scope["order"] == ["a", "b"]
	assert [p.name for p in module.units] == ["a.py", "b.py"]


def test_import_cycle_is_reported(runtime: Runtime, remote) -> None:
	remote.add(YEAR, {"year.py": f'require("{APP}")\n'})
	remote.add(APP, {"app.py": f'require("{YEAR}")\n'})
	with pytest.raises(ImportCycle) as excinfo:
		runtime.resolve(YEAR)
	assert f"{YEAR} -> {APP} -> {YEAR}" in excinfo.value.message
	assert runtime.resolver.loaded() == {}


def test_failed_fetch_leaves_nothing_loaded(runtime: Runtime, remote, deps_dir) -> None:
	with pytest.raises(FetchFailed):
		runtime.resolve(YEAR)
	assert not (deps_dir / "acme" / "year@v1.0.0").exists()
	assert runtime.resolver.loaded() == {}


def test_traversal_ref_is_rejected_before_io(runtime: Runtime, remote, deps_dir) -> None:
	with pytest.raises(InvalidModuleRef):
		runtime.resolve("../x@v1.0.0")
	with pytest.raises(InvalidModuleRef):
		runtime.resolver.ensure(ModuleRef(owner="..", name="x", version="v1.0.0"))
	assert remote.requests == []
	assert not deps_dir.exists()


def test_private_builtin_name_in_a_module_does_not_leak(runtime: Runtime, remote) -> None:
	remote.add(
		YEAR,
		{"year.py": YEAR_SRC + "\ndef len(x):\n    return -1\n"},
	)
	runtime.exec_source(
		f'require("{YEAR}")\n'
		'n = len([1, 2, 3])\n'
		'm = list(len(s) for s in ["ab"])\n'
		'year = get()\n'
	)
	assert runtime.registry.is_tracked("len")
	assert (runtime.scope["n"], runtime.scope["m"], runtime.scope["year"]) == (3, [2], "2020")
