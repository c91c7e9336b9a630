# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Target descriptors derived from a resolved `PackageIndex`.

Nothing here knows about Starlark syntax; `nmbuild.emit` renders these.
List order always follows the scan order of the index.
"""

from __future__ import annotations

from dataclasses import dataclass

from nmbuild.index import NODE_MODULES, PackageIndex, PackageRecord, Scope

MODULE_MARKER_TAG = "NODE_MODULE_MARKER"
TYPINGS_PATTERN = "**/*.d.ts"


@dataclass(frozen=True)
class Glob:
	include: list[str]
	exclude: list[str]


@dataclass(frozen=True)
class FileGroup:
	name: str
	srcs: list[str] | Glob  # target labels, or a file glob
	tags: list[str]


@dataclass(frozen=True)
class NodejsBinary:
	name: str
	entry_point: str
	data: list[str]


@dataclass(frozen=True)
class PackageTargets:
	package: PackageRecord
	aggregate: FileGroup
	files: FileGroup
	typings: FileGroup
	binaries: list[NodejsBinary]


@dataclass(frozen=True)
class ScopeTarget:
	scope: Scope
	aggregate: FileGroup


@dataclass(frozen=True)
class TargetGraph:
	preamble: list[FileGroup]
	packages: list[PackageTargets]
	scopes: list[ScopeTarget]

	def binaries(self) -> list[NodejsBinary]:
		return [binary for targets in self.packages for binary in targets.binaries]


def label(name: str) -> str:
	return f":{name}"


def files_target_name(package_dir: str) -> str:
	return f"{package_dir}__files"


def typings_target_name(package_dir: str) -> str:
	return f"{package_dir}__typings"


def unlabelable_excludes(base: str, *, nested: bool) -> list[str]:
	"""
	Patterns for files that cannot be addressed as labels.

	Files under test & docs may contain file names that are not legal labels
	(e.g. node_modules/ecstatic/test/public/中文/檔案.html); names with a space
	never are. `nested` matches test/docs directories at any depth instead of
	only at the top of `base`.
	"""
	prefix = f"{base}/**" if nested else base
	return [
		f"{prefix}/test/**",
		f"{prefix}/docs/**",
		f"{base}/**/* */**",
		f"{base}/**/* *",
	]


def preamble_targets() -> list[FileGroup]:
	"""The catch-all `node_modules` and `node_modules_lite` groups."""
	excludes = unlabelable_excludes(NODE_MODULES, nested=True)
	return [
		FileGroup(
			name=NODE_MODULES,
			srcs=Glob(include=[f"{NODE_MODULES}/**/*"], exclude=excludes),
			tags=[],
		),
		FileGroup(
			name=f"{NODE_MODULES}_lite",
			srcs=Glob(
				include=[
					f"{NODE_MODULES}/**/*.js",
					f"{NODE_MODULES}/{TYPINGS_PATTERN}",
					f"{NODE_MODULES}/**/*.json",
					f"{NODE_MODULES}/.bin/*",
				],
				exclude=excludes,
			),
			tags=[],
		),
	]


def package_targets(pkg: PackageRecord) -> PackageTargets:
	base = f"{NODE_MODULES}/{pkg.dir}"
	excludes = unlabelable_excludes(base, nested=False)
	aggregate = FileGroup(
		name=pkg.dir,
		srcs=[label(files_target_name(pkg.dir))] + [label(files_target_name(dep.dir)) for dep in pkg.dependency_files()],
		tags=[MODULE_MARKER_TAG],
	)
	files = FileGroup(
		name=files_target_name(pkg.dir),
		srcs=Glob(include=[f"{base}/**/*"], exclude=list(excludes)),
		tags=[MODULE_MARKER_TAG],
	)
	typings = FileGroup(
		name=typings_target_name(pkg.dir),
		srcs=Glob(include=[f"{base}/{TYPINGS_PATTERN}"], exclude=list(excludes)),
		tags=[MODULE_MARKER_TAG],
	)
	binaries = [
		NodejsBinary(
			name=f"{pkg.dir}/{name}",
			entry_point=f"{pkg.dir}/{path}",
			data=[label(pkg.dir)],
		)
		for name, path in pkg.executables.items()
	]
	return PackageTargets(package=pkg, aggregate=aggregate, files=files, typings=typings, binaries=binaries)


def scope_target(scope: Scope) -> ScopeTarget:
	return ScopeTarget(
		scope=scope,
		aggregate=FileGroup(
			name=scope.name,
			srcs=[label(pkg.dir) for pkg in scope.packages],
			tags=[MODULE_MARKER_TAG],
		),
	)


def build_target_graph(index: PackageIndex) -> TargetGraph:
	"""
	Build targets for every root package and scope of an already resolved index.
	"""
	return TargetGraph(
		preamble=preamble_targets(),
		packages=[package_targets(pkg) for pkg in index.root_packages()],
		scopes=[scope_target(scope) for scope in index.scopes()],
	)
