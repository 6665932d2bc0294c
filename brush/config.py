# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Runtime configuration.

Cache root selection, in priority order:
- explicit override (`deps_dir` argument, `--deps-dir`, or `BRUSH_DEPS`)
- project-relative default: `<git toplevel>/.brush/deps`
- user-level cache home: `~/.cache/brush/deps`
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping

DEFAULT_URL_TEMPLATE = "https://github.com/{owner}/{name}/archive/refs/tags/{version}.tar.gz"
DEFAULT_TIMEOUT_S = 30.0


@dataclass(frozen=True)
class BrushConfig:
	deps_dir: Path
	url_template: str = DEFAULT_URL_TEMPLATE
	timeout_s: float = DEFAULT_TIMEOUT_S
	lock_path: Path | None = None
	record_lock: bool = False
	strict: bool = False

	def with_overrides(self, **kwargs) -> "BrushConfig":
		return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


def _git_toplevel(cwd: Path | None = None) -> Path | None:
	try:
		cp = subprocess.run(
			["git", "rev-parse", "--show-toplevel"],
			cwd=str(cwd) if cwd is not None else None,
			text=True,
			capture_output=True,
		)
	except OSError:
		return None
	if cp.returncode != 0:
		return None
	top = cp.stdout.strip()
	return Path(top) if top else None


def default_deps_dir(
	*,
	override: Path | None = None,
	env: Mapping[str, str] | None = None,
	cwd: Path | None = None,
) -> Path:
	env = os.environ if env is None else env
	if override is not None:
		return Path(override)
	if env.get("BRUSH_DEPS"):
		return Path(env["BRUSH_DEPS"])
	top = _git_toplevel(cwd)
	if top is not None:
		return top / ".brush" / "deps"
	home = Path(env["HOME"]) if env.get("HOME") else Path.home()
	return home / ".cache" / "brush" / "deps"


def load_config(
	*,
	deps_dir: Path | None = None,
	env: Mapping[str, str] | None = None,
	cwd: Path | None = None,
) -> BrushConfig:
	"""Build a config from the environment; explicit arguments win."""
	env = os.environ if env is None else env
	timeout_raw = env.get("BRUSH_TIMEOUT")
	try:
		timeout_s = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_S
	except ValueError as err:
		raise ValueError(f"BRUSH_TIMEOUT must be a number of seconds, got: {timeout_raw}") from err
	lock_raw = env.get("BRUSH_LOCK")
	return BrushConfig(
		deps_dir=default_deps_dir(override=deps_dir, env=env, cwd=cwd),
		url_template=env.get("BRUSH_URL_TEMPLATE") or DEFAULT_URL_TEMPLATE,
		timeout_s=timeout_s,
		lock_path=Path(lock_raw) if lock_raw else None,
	)
