# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Dependency flattening.

Each declared dependency name is resolved the way node's module loader does
it: the closest enclosing `node_modules` wins, the root of the install tree
is the fallback. The result for every package is its transitive closure in
depth-first, declaration order.
"""

from __future__ import annotations

from typing import Iterator, Mapping

from nmbuild.errors import ResolutionError
from nmbuild.index import NODE_MODULES, PackageRecord

# Resolution order; the boolean marks sources that must resolve.
# Missing optionalDependencies are skipped: npm and yarn do not fail when
# they fail to install (e.g. `fsevents` off macOS).
_DEPENDENCY_SOURCES: tuple[tuple[str, bool], ...] = (
	("dependencies", True),
	("peer_dependencies", True),
	("optional_dependencies", False),
)


def packages_by_dir(packages: list[PackageRecord]) -> dict[str, PackageRecord]:
	return {pkg.dir: pkg for pkg in packages}


def find_dependency(dep: PackageRecord, name: str, by_dir: Mapping[str, PackageRecord]) -> PackageRecord | None:
	"""
	Find the package `dep` sees when it requires `name`, or None.
	"""
	segments = dep.dir.split("/")
	while segments:
		candidate = "/".join([*segments, NODE_MODULES, name])
		found = by_dir.get(candidate)
		if found is not None:
			return found
		segments.pop()
	return by_dir.get(name)


def _iter_dependencies(dep: PackageRecord, by_dir: Mapping[str, PackageRecord]) -> Iterator[PackageRecord]:
	# Each source is resolved as a whole before any of its entries is walked,
	# so a missing required name fails before its siblings are descended into.
	for attr, required in _DEPENDENCY_SOURCES:
		found: list[PackageRecord] = []
		for name in getattr(dep, attr):
			match = find_dependency(dep, name, by_dir)
			if match is None:
				if required:
					raise ResolutionError(
						reason_code="REQUIRED_DEP_MISSING",
						message=f"could not find required dependency {name} of {dep.dir}",
						package_dir=dep.dir,
						dependency=name,
					)
				continue
			found.append(match)
		yield from found


def flatten_dependencies(pkg: PackageRecord, by_dir: Mapping[str, PackageRecord]) -> None:
	"""
	Append the transitive closure of `pkg` (starting with `pkg` itself) to
	`pkg.resolved_dependencies`.

	Already visited packages are skipped, which terminates cycles and makes a
	second call on the same package a no-op.
	"""
	visited = {dep.dir for dep in pkg.resolved_dependencies}
	if pkg.dir in visited:
		return
	visited.add(pkg.dir)
	pkg.resolved_dependencies.append(pkg)

	# Explicit stack instead of recursion: dependency chains in large trees
	# can be deeper than the interpreter's recursion limit.
	stack = [_iter_dependencies(pkg, by_dir)]
	while stack:
		dep = next(stack[-1], None)
		if dep is None:
			stack.pop()
			continue
		if dep.dir in visited:
			continue
		visited.add(dep.dir)
		pkg.resolved_dependencies.append(dep)
		stack.append(_iter_dependencies(dep, by_dir))


def resolve_all(packages: list[PackageRecord]) -> None:
	"""Flatten dependencies of every package; raises ResolutionError on the first missing required one."""
	by_dir = packages_by_dir(packages)
	for pkg in packages:
		flatten_dependencies(pkg, by_dir)
