# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from nmbuild.emit import read_manual_contents, render_build_file, write_build_file
from nmbuild.errors import NmBuildError
from nmbuild.graph_v0 import graph_to_dict
from nmbuild.index import PackageIndex, scan_install_tree_v0
from nmbuild.resolve import resolve_all
from nmbuild.targets import build_target_graph

BUILD_FILE_NAME = "BUILD.bazel"
MANUAL_CONTENTS_NAME = "manual_build_file_contents"


@dataclass(frozen=True)
class GenerateOptions:
	root_dir: Path = Path(".")
	out_path: Path | None = None  # default: <root_dir>/BUILD.bazel
	manual_path: Path | None = None  # default: <root_dir>/manual_build_file_contents
	json: bool = False

	def resolved_out_path(self) -> Path:
		return self.out_path if self.out_path is not None else self.root_dir / BUILD_FILE_NAME

	def resolved_manual_path(self) -> Path:
		return self.manual_path if self.manual_path is not None else self.root_dir / MANUAL_CONTENTS_NAME


@dataclass(frozen=True)
class GenerateReport:
	ok: bool
	out_path: str
	package_count: int
	scope_count: int
	binary_count: int
	manual_contents: bool
	written: bool
	errors: list[NmBuildError]

	def to_dict(self) -> dict[str, Any]:
		return {
			"ok": self.ok,
			"out_path": self.out_path,
			"package_count": self.package_count,
			"scope_count": self.scope_count,
			"binary_count": self.binary_count,
			"manual_contents": self.manual_contents,
			"written": self.written,
			"errors": [e.to_dict() for e in self.errors],
		}


def load_resolved_index(root_dir: Path) -> PackageIndex:
	"""Scan `<root_dir>/node_modules` and flatten every package's dependencies."""
	index = scan_install_tree_v0(root_dir)
	resolve_all(index.packages)
	return index


def generate_v0(opts: GenerateOptions) -> GenerateReport:
	"""
	Generate the BUILD file for the install tree under `opts.root_dir`.

	All-or-nothing: the file is only written once scanning, resolution and
	rendering all succeeded.
	"""
	out_path = opts.resolved_out_path()
	try:
		index = load_resolved_index(opts.root_dir)
		graph = build_target_graph(index)
		manual = read_manual_contents(opts.resolved_manual_path())
		text = render_build_file(graph, manual_contents=manual)
		write_build_file(out_path, text)
	except NmBuildError as err:
		return GenerateReport(
			ok=False,
			out_path=str(out_path),
			package_count=0,
			scope_count=0,
			binary_count=0,
			manual_contents=False,
			written=False,
			errors=[err],
		)
	return GenerateReport(
		ok=True,
		out_path=str(out_path),
		package_count=len(index.packages),
		scope_count=len(graph.scopes),
		binary_count=len(graph.binaries()),
		manual_contents=manual is not None,
		written=True,
		errors=[],
	)


@dataclass(frozen=True)
class GraphOptions:
	root_dir: Path = Path(".")


def graph_v0(opts: GraphOptions) -> dict[str, Any]:
	return graph_to_dict(load_resolved_index(opts.root_dir))
