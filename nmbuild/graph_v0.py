# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Resolved dependency graph report (v0).

A stable JSON view of what `nmbuild generate` would wire up, for inspecting
resolution without touching the BUILD file. Package and dependency lists keep
scan/resolution order; only object keys are sorted.
"""

from __future__ import annotations

import json
from typing import Any

from nmbuild.index import PackageIndex, PackageRecord


def canonical_json_bytes(obj: Any) -> bytes:
	return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _package_entry(pkg: PackageRecord) -> dict[str, Any]:
	return {
		"dir": pkg.dir,
		"name": pkg.name,
		"version": pkg.version,
		"nested": pkg.is_nested,
		"dependencies": [dep.dir for dep in pkg.resolved_dependencies if dep is not pkg],
		"executables": dict(pkg.executables),
	}


def graph_to_dict(index: PackageIndex) -> dict[str, Any]:
	return {
		"format": "nmbuild-graph",
		"version": 0,
		"packages": [_package_entry(pkg) for pkg in index.packages],
		"scopes": {scope.name: [pkg.dir for pkg in scope.packages] for scope in index.scopes()},
	}
