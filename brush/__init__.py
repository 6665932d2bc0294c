# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
brush: versioned, content-addressed modules for Python scripts.

Core operations:
  resolve(ref)        fetch/cache a module and run its source units
  define(name, body)  register a hash-identified definition
  publish(names)      expose definitions under friendly names
  set_module(name)    prefix subsequent definitions and exports
"""

from __future__ import annotations

from brush.errors import (
	BrushError,
	ExtractFailed,
	FetchFailed,
	ImportCycle,
	InvalidDefinition,
	InvalidModuleName,
	InvalidModuleRef,
	InvalidVersion,
	PublishUnboundName,
	UndefinedFunction,
	UnresolvedReference,
)
from brush.ref import ModuleRef, parse_module_ref
from brush.registry import Registry, Symbol
from brush.runtime import Runtime

__all__ = [
	"BrushError",
	"ExtractFailed",
	"FetchFailed",
	"ImportCycle",
	"InvalidDefinition",
	"InvalidModuleName",
	"InvalidModuleRef",
	"InvalidVersion",
	"ModuleRef",
	"PublishUnboundName",
	"Registry",
	"Runtime",
	"Symbol",
	"UndefinedFunction",
	"UnresolvedReference",
	"parse_module_ref",
]
