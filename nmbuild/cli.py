# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from nmbuild.errors import NmBuildError
from nmbuild.generate import GenerateOptions, GraphOptions, generate_v0, graph_v0
from nmbuild.graph_v0 import canonical_json_bytes


def _build_parser() -> argparse.ArgumentParser:
	p = argparse.ArgumentParser(prog="nmbuild", description="Bazel targets for an installed node_modules tree")
	sub = p.add_subparsers(dest="cmd", required=True)

	generate = sub.add_parser("generate", help="Write BUILD.bazel with targets for every installed package")
	generate.add_argument(
		"--root",
		type=Path,
		default=Path("."),
		help="Directory holding node_modules (default: current directory)",
	)
	generate.add_argument("--out", type=Path, default=None, help="Output path (default: <root>/BUILD.bazel)")
	generate.add_argument(
		"--manual",
		type=Path,
		default=None,
		help="Fragment appended verbatim when present (default: <root>/manual_build_file_contents)",
	)
	generate.add_argument("--json", action="store_true", help="Emit machine-readable JSON report")

	graph = sub.add_parser("graph", help="Print the resolved dependency graph as JSON")
	graph.add_argument(
		"--root",
		type=Path,
		default=Path("."),
		help="Directory holding node_modules (default: current directory)",
	)
	graph.add_argument("--json", action="store_true", help="Emit compact JSON instead of indented JSON")
	return p


def main(argv: list[str] | None = None) -> int:
	p = _build_parser()
	args = p.parse_args(argv)

	if args.cmd == "generate":
		opts = GenerateOptions(root_dir=args.root, out_path=args.out, manual_path=args.manual, json=bool(args.json))
		report = generate_v0(opts)
		if opts.json:
			print(json.dumps(report.to_dict(), sort_keys=True, separators=(",", ":")))
			return 0 if report.ok else 2
		if report.ok:
			print(
				f"generate: packages={report.package_count} scopes={report.scope_count} "
				f"binaries={report.binary_count} wrote {report.out_path}"
			)
			return 0
		for err in report.errors:
			print(err.format_human(), file=sys.stderr)
		return 2

	if args.cmd == "graph":
		try:
			obj = graph_v0(GraphOptions(root_dir=args.root))
		except NmBuildError as err:
			print(err.format_human(), file=sys.stderr)
			return 2
		if args.json:
			print(canonical_json_bytes(obj).decode("utf-8"))
		else:
			print(json.dumps(obj, indent=2, sort_keys=True, ensure_ascii=False))
		return 0

	raise AssertionError("unreachable")
