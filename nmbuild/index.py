# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Install tree scanning.

Walks a `node_modules` tree as laid out by npm or yarn and turns every
directory holding a `package.json` into a `PackageRecord`, including private
copies nested under other packages at any depth.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from nmbuild.errors import PackageParseError

NODE_MODULES = "node_modules"
PACKAGE_JSON = "package.json"
SCOPE_PREFIX = "@"


@dataclass(eq=False)
class PackageRecord:
	dir: str  # posix path relative to the install root; unique key
	name: str
	version: str
	is_nested: bool
	dependencies: dict[str, str]
	peer_dependencies: dict[str, str]
	optional_dependencies: dict[str, str]
	executables: dict[str, str]
	metadata: dict[str, Any]
	# Transitive closure filled by `nmbuild.resolve`; includes the package itself.
	resolved_dependencies: list[PackageRecord] = field(default_factory=list)

	def dependency_files(self) -> list[PackageRecord]:
		"""Hoisted dependencies whose files must be added to this package's aggregate."""
		return [dep for dep in self.resolved_dependencies if dep is not self and not dep.is_nested]


@dataclass(frozen=True)
class Scope:
	name: str
	packages: list[PackageRecord]


@dataclass(frozen=True)
class PackageIndex:
	packages: list[PackageRecord]
	scope_names: list[str]

	def root_packages(self) -> list[PackageRecord]:
		return [pkg for pkg in self.packages if not pkg.is_nested]

	def scopes(self) -> list[Scope]:
		return [
			Scope(name=scope, packages=[pkg for pkg in self.root_packages() if pkg.dir.startswith(f"{scope}/")])
			for scope in self.scope_names
		]


def cleanup_bin_path(path: str) -> str:
	# Bin paths come as './bin/foo', 'bin/foo' or even 'lib\\foo'.
	path = path.replace("\\", "/")
	if path.startswith("./"):
		path = path[2:]
	return path


def _is_package(path: Path) -> bool:
	return path.is_dir() and (path / PACKAGE_JSON).is_file()


def _load_package_json(path: Path, *, package_dir: str) -> dict[str, Any]:
	pkg_json = path / PACKAGE_JSON
	try:
		text = pkg_json.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as err:
		raise PackageParseError(
			reason_code="PACKAGE_JSON_UNREADABLE",
			message=f"cannot read {PACKAGE_JSON}: {err}",
			package_dir=package_dir,
			artifact_path=str(pkg_json),
		) from err
	try:
		data = json.loads(text)
	except json.JSONDecodeError as err:
		raise PackageParseError(
			reason_code="PACKAGE_JSON_INVALID",
			message=f"malformed {PACKAGE_JSON}: {err}",
			package_dir=package_dir,
			artifact_path=str(pkg_json),
		) from err
	if not isinstance(data, dict):
		raise PackageParseError(
			reason_code="PACKAGE_JSON_NOT_OBJECT",
			message=f"{PACKAGE_JSON} must be a JSON object",
			package_dir=package_dir,
			artifact_path=str(pkg_json),
		)
	return data


def _dependency_map(data: dict[str, Any], key: str, *, package_dir: str) -> dict[str, str]:
	raw = data.get(key)
	if raw is None:
		return {}
	if not isinstance(raw, dict):
		raise PackageParseError(
			reason_code="PACKAGE_FIELD_INVALID",
			message=f"'{key}' must be an object",
			package_dir=package_dir,
		)
	# Ranges are opaque: the tree on disk is already resolved.
	return {str(name): str(spec) for name, spec in raw.items()}


def _executables(data: dict[str, Any], *, name: str, package_dir: str) -> dict[str, str]:
	raw = data.get("bin")
	if isinstance(raw, str):
		return {name or package_dir: cleanup_bin_path(raw)}
	if isinstance(raw, dict):
		out: dict[str, str] = {}
		for key, path in raw.items():
			if not isinstance(path, str):
				raise PackageParseError(
					reason_code="PACKAGE_FIELD_INVALID",
					message=f"'bin' entry '{key}' must be a string path",
					package_dir=package_dir,
				)
			out[str(key)] = cleanup_bin_path(path)
		return out
	# Arrays (and anything else) are not a valid `bin` shape; treat as no executables.
	return {}


def parse_package(path: Path, install_root: Path) -> PackageRecord:
	"""
	Parse the package directory at `path` into a `PackageRecord`.

	`dir` is `path` relative to `install_root`. Executables are only collected
	for root packages: nested copies are never wired up as binaries.
	"""
	package_dir = path.relative_to(install_root).as_posix()
	data = _load_package_json(path, package_dir=package_dir)
	is_nested = NODE_MODULES in PurePosixPath(package_dir).parts
	name = data.get("name")
	name = name if isinstance(name, str) else ""
	version = data.get("version")
	version = version if isinstance(version, str) else ""
	return PackageRecord(
		dir=package_dir,
		name=name,
		version=version,
		is_nested=is_nested,
		dependencies=_dependency_map(data, "dependencies", package_dir=package_dir),
		peer_dependencies=_dependency_map(data, "peerDependencies", package_dir=package_dir),
		optional_dependencies=_dependency_map(data, "optionalDependencies", package_dir=package_dir),
		executables={} if is_nested else _executables(data, name=name, package_dir=package_dir),
		metadata=data,
	)


def _listing(path: Path) -> list[str]:
	return sorted(entry.name for entry in path.iterdir())


def find_packages(tree: Path, install_root: Path) -> list[PackageRecord]:
	"""
	Return every package under `tree`, each root package followed by the
	packages of its own nested `node_modules`, then the packages of each scope.
	"""
	if not tree.is_dir():
		return []

	result: list[PackageRecord] = []
	listing = _listing(tree)

	for entry in listing:
		if entry.startswith(SCOPE_PREFIX):
			continue
		path = tree / entry
		if not _is_package(path):
			continue
		result.append(parse_package(path, install_root))
		result.extend(find_packages(path / NODE_MODULES, install_root))

	for entry in listing:
		if not entry.startswith(SCOPE_PREFIX):
			continue
		path = tree / entry
		if path.is_dir():
			result.extend(find_packages(path, install_root))

	return result


def find_scopes(install_root: Path) -> list[str]:
	if not install_root.is_dir():
		return []
	return [entry for entry in _listing(install_root) if entry.startswith(SCOPE_PREFIX) and (install_root / entry).is_dir()]


def scan_install_tree_v0(root_dir: Path) -> PackageIndex:
	"""
	Scan `<root_dir>/node_modules`.

	A missing install tree is not an error: it yields an empty index.
	"""
	install_root = root_dir / NODE_MODULES
	return PackageIndex(
		packages=find_packages(install_root, install_root),
		scope_names=find_scopes(install_root),
	)
