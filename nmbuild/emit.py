# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Starlark rendering of a `TargetGraph` into a BUILD.bazel file.
"""

from __future__ import annotations

import json
import os
from pathlib import Path

from nmbuild.errors import NmBuildError
from nmbuild.index import PackageRecord
from nmbuild.targets import FileGroup, Glob, NodejsBinary, PackageTargets, ScopeTarget, TargetGraph

BUILD_FILE_HEADER = """# Generated file from nmbuild. Do not edit: it is rewritten on every run.
# Hand written targets belong in manual_build_file_contents next to it.

# All rules in other repositories can use these targets
package(default_visibility = ["//visibility:public"])

load("@build_bazel_rules_nodejs//:defs.bzl", "nodejs_binary")
"""

_PREAMBLE_COMMENTS = {
	"node_modules": """# The entire node_modules directory in one catch-all filegroup.
# NB: Using this target may have bad performance implications if
# there are many files in filegroup.
# See https://github.com/bazelbuild/bazel/issues/5153.""",
	"node_modules_lite": """# A lite version of the node_modules filegroup that includes
# only js, d.ts and json files as well as the .bin folder. This can
# be used in some cases to improve performance by reducing the number
# of runfiles. Prefer fine grained deps such as ["@npm//:a", "@npm//:b", ...].
# Files with no extension are not included.""",
}

_INDENT = "    "


def _quote(text: str) -> str:
	# JSON string literals are valid Starlark string literals.
	return json.dumps(text, ensure_ascii=False)


def _render_string_list(items: list[str], depth: int) -> list[str]:
	pad = _INDENT * depth
	return [f"{pad}{_quote(item)}," for item in items]


def _render_glob(glob: Glob) -> list[str]:
	lines = [f"{_INDENT}srcs = glob("]
	if len(glob.include) == 1:
		lines.append(f"{_INDENT * 2}include = [{_quote(glob.include[0])}],")
	else:
		lines.append(f"{_INDENT * 2}include = [")
		lines.extend(_render_string_list(glob.include, 3))
		lines.append(f"{_INDENT * 2}],")
	lines.append(f"{_INDENT * 2}exclude = [")
	lines.extend(_render_string_list(glob.exclude, 3))
	lines.append(f"{_INDENT * 2}],")
	lines.append(f"{_INDENT}),")
	return lines


def render_file_group(group: FileGroup, *, src_comments: dict[int, str] | None = None) -> str:
	"""
	Render a `filegroup`; `src_comments` maps a position in a label list to a
	comment line emitted just before that label.
	"""
	lines = ["filegroup(", f"{_INDENT}name = {_quote(group.name)},"]
	if isinstance(group.srcs, Glob):
		lines.extend(_render_glob(group.srcs))
	else:
		lines.append(f"{_INDENT}srcs = [")
		for pos, src in enumerate(group.srcs):
			if src_comments and pos in src_comments:
				lines.append(f"{_INDENT * 2}# {src_comments[pos]}")
			lines.append(f"{_INDENT * 2}{_quote(src)},")
		lines.append(f"{_INDENT}],")
	if group.tags:
		lines.append(f"{_INDENT}tags = [{', '.join(_quote(tag) for tag in group.tags)}],")
	lines.append(")")
	return "\n".join(lines) + "\n"


def render_binary(binary: NodejsBinary) -> str:
	lines = [
		"nodejs_binary(",
		f"{_INDENT}name = {_quote(binary.name)},",
		f"{_INDENT}entry_point = {_quote(binary.entry_point)},",
		f"{_INDENT}install_source_map_support = False,",
		f"{_INDENT}data = [{', '.join(_quote(d) for d in binary.data)}],",
		")",
	]
	return "\n".join(lines) + "\n"


def metadata_comment(pkg: PackageRecord) -> str:
	"""The package.json of `pkg` plus its resolution results, as `# ` prefixed JSON."""
	obj = dict(pkg.metadata)
	obj["_dir"] = pkg.dir
	obj["_isNested"] = pkg.is_nested
	obj["_dependencies"] = [dep.dir for dep in pkg.resolved_dependencies]
	obj["_executables"] = dict(pkg.executables)
	text = json.dumps(obj, indent=2, ensure_ascii=False)
	return "\n".join(f"# {line}" for line in text.split("\n"))


def render_package(targets: PackageTargets) -> str:
	pkg = targets.package
	src_comments = {0: f"{pkg.dir} package contents (and contents of nested node_modules)"}
	if len(targets.aggregate.srcs) > 1:
		src_comments[1] = "direct or transitive dependencies hoisted to root by the package manager"
	parts = [
		"",
		f'# Generated target for npm package "{pkg.dir}"',
		metadata_comment(pkg),
		render_file_group(targets.aggregate, src_comments=src_comments),
		render_file_group(targets.files),
		render_file_group(targets.typings),
	]
	for binary in targets.binaries:
		exe_name = binary.name[len(pkg.dir) + 1 :]
		parts.append(f"# Wire up the `bin` entry `{exe_name}`\n" + render_binary(binary))
	return "\n".join(parts)


def render_scope(target: ScopeTarget) -> str:
	return "\n".join(
		[
			"",
			f"# Generated target for npm scope {target.scope.name}",
			render_file_group(target.aggregate),
		]
	)


def render_build_file(graph: TargetGraph, *, manual_contents: str | None = None) -> str:
	parts = [BUILD_FILE_HEADER]
	for group in graph.preamble:
		comment = _PREAMBLE_COMMENTS.get(group.name)
		parts.append((f"{comment}\n" if comment else "") + render_file_group(group))
	text = "\n".join(parts)
	for targets in graph.packages:
		text += render_package(targets)
	for scope in graph.scopes:
		text += render_scope(scope)
	if manual_contents is not None:
		text += "\n\n" + manual_contents
	return text


def read_manual_contents(path: Path) -> str | None:
	"""Return the user supplied fragment at `path`, or None when there is none."""
	if not path.is_file():
		return None
	try:
		return path.read_text(encoding="utf-8")
	except (OSError, UnicodeDecodeError) as err:
		raise NmBuildError(
			reason_code="MANUAL_CONTENTS_UNREADABLE",
			message=f"cannot read manual build file contents: {err}",
			artifact_path=str(path),
		) from err


def write_build_file(path: Path, text: str) -> None:
	tmp = path.with_name(path.name + f".tmp.{os.getpid()}")
	try:
		path.parent.mkdir(parents=True, exist_ok=True)
		tmp.write_text(text, encoding="utf-8")
		os.replace(tmp, path)
	except OSError as err:
		if tmp.exists():
			tmp.unlink()
		raise NmBuildError(
			reason_code="BUILD_FILE_UNWRITABLE",
			message=f"cannot write build file: {err}",
			artifact_path=str(path),
		) from err
