# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import logging
import sys
import traceback
from pathlib import Path

from brush.config import load_config
from brush.errors import BrushError
from brush.runtime import Runtime


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="brush", description="Versioned, content-addressed modules for Python scripts")
	p.add_argument("-v", "--verbose", action="store_true", help="Log debug details to stderr")
	p.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
	p.add_argument(
		"--deps-dir",
		type=Path,
		default=None,
		help="Module cache root (default: $BRUSH_DEPS, <git toplevel>/.brush/deps, or ~/.cache/brush/deps)",
	)
	p.add_argument("--lock", type=Path, default=None, help="Lockfile path (default: $BRUSH_LOCK; no lock when unset)")
	p.add_argument("--record-lock", action="store_true", help="Record archive hashes of new fetches in the lockfile")
	sub = p.add_subparsers(dest="cmd", required=True)

	run = sub.add_parser("run", help="Run a script that may require() modules")
	run.add_argument("script", type=Path, help="Path to the script")
	run.add_argument("--strict", action="store_true", help="Fail on unresolved references in definitions")

	fetch = sub.add_parser("fetch", help="Fetch module(s) into the cache without running them")
	fetch.add_argument("refs", nargs="+", help="Module references (owner/name@vX.Y.Z)")
	fetch.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")

	sub.add_parser("deps-dir", help="Print the module cache root")
	return p


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
	level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
	logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)
	_configure_logging(verbose=bool(args.verbose), quiet=bool(args.quiet))

	try:
		config = load_config(deps_dir=args.deps_dir)
	except ValueError as err:
		p.error(str(err))
		return 2
	config = config.with_overrides(
		lock_path=args.lock,
		record_lock=True if args.record_lock else None,
		strict=True if getattr(args, "strict", False) else None,
	)

	if args.cmd == "deps-dir":
		print(config.deps_dir)
		return 0

	if args.cmd == "fetch":
		selected: list[dict[str, object]] = []
		errors: list[BrushError] = []
		fetched: list[dict[str, object]] = []
		try:
			rt = Runtime(config)
		except BrushError as err:
			errors.append(err)
		else:
			with rt:
				for ref in args.refs:
					try:
						path = rt.resolver.ensure(ref)
					except BrushError as err:
						errors.append(err)
						break
					selected.append({"ref": ref, "cache_path": str(path)})
				fetched = [r.to_dict() for r in rt.resolver.fetched]
		if args.json:
			report = {
				"ok": not errors,
				"selected": selected,
				"fetched": fetched,
				"errors": [e.to_dict() for e in errors],
			}
			print(json.dumps(report, sort_keys=True, separators=(",", ":")))
			return 0 if not errors else 2
		for err in errors:
			print(err.format_human(), file=sys.stderr)
		return 0 if not errors else 2

	if args.cmd == "run":
		try:
			rt = Runtime(config)
		except BrushError as err:
			print(err.format_human(), file=sys.stderr)
			return 2
		with rt:
			try:
				rt.run_script(args.script)
			except BrushError as err:
				print(err.format_human(), file=sys.stderr)
				return 2
			except SystemExit as err:
				return err.code if isinstance(err.code, int) else 1
			except Exception:
				traceback.print_exc()
				return 1
		return 0

	raise AssertionError("unreachable")
