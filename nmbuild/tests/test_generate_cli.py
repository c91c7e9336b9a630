# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path
from typing import Any

from nmbuild.cli import main
from nmbuild.emit import BUILD_FILE_HEADER
from nmbuild.generate import GenerateOptions, generate_v0

REPO_ROOT = Path(__file__).resolve().parents[2]


def _write_pkg(root: Path, rel: str, **fields: Any) -> None:
	pkg_dir = root / "node_modules" / rel
	pkg_dir.mkdir(parents=True, exist_ok=True)
	obj = {"name": rel.rsplit("node_modules/", 1)[-1], "version": "1.0.0"}
	obj.update(fields)
	(pkg_dir / "package.json").write_text(json.dumps(obj), encoding="utf-8")


def _run_nmbuild(argv: list[str]) -> subprocess.CompletedProcess[str]:
	return subprocess.run(
		[sys.executable, "-m", "nmbuild", *argv],
		cwd=str(REPO_ROOT),
		text=True,
		capture_output=True,
	)


def _sample_tree(root: Path) -> None:
	_write_pkg(root, "left", dependencies={"right": "^1.0.0"}, bin="./bin/left.js")
	_write_pkg(root, "right", optionalDependencies={"fsevents": "^2.0.0"})
	_write_pkg(root, "@s/a", dependencies={"left": "*"})


def test_generate_writes_build_file(tmp_path: Path) -> None:
	_sample_tree(tmp_path)

	report = generate_v0(GenerateOptions(root_dir=tmp_path))

	assert report.ok
	assert report.written
	assert (report.package_count, report.scope_count, report.binary_count) == (3, 1, 1)
	text = (tmp_path / "BUILD.bazel").read_text(encoding="utf-8")
	assert text.startswith(BUILD_FILE_HEADER)
	assert 'name = "node_modules_lite",' in text
	assert '# Generated target for npm package "left"' in text
	assert '#   "_dependencies": [\n#     "left",\n#     "right"\n#   ],' in text
	assert (
		"filegroup(\n"
		'    name = "left",\n'
		"    srcs = [\n"
		"        # left package contents (and contents of nested node_modules)\n"
		'        ":left__files",\n'
		"        # direct or transitive dependencies hoisted to root by the package manager\n"
		'        ":right__files",\n'
		"    ],\n"
		'    tags = ["NODE_MODULE_MARKER"],\n'
		")\n"
	) in text
	assert (
		"nodejs_binary(\n"
		'    name = "left/left",\n'
		'    entry_point = "left/bin/left.js",\n'
		"    install_source_map_support = False,\n"
		'    data = [":left"],\n'
		")\n"
	) in text
	assert '# Generated target for npm scope @s\nfilegroup(\n    name = "@s",\n    srcs = [\n        ":@s/a",\n    ],' in text
	assert not list(tmp_path.glob("BUILD.bazel.tmp.*"))


def test_generate_is_byte_identical_across_runs(tmp_path: Path) -> None:
	_sample_tree(tmp_path)
	out = tmp_path / "BUILD.bazel"

	assert generate_v0(GenerateOptions(root_dir=tmp_path)).ok
	first = out.read_bytes()
	assert generate_v0(GenerateOptions(root_dir=tmp_path)).ok
	assert out.read_bytes() == first


def test_generate_appends_manual_contents(tmp_path: Path) -> None:
	_sample_tree(tmp_path)
	manual = 'filegroup(name = "extra", srcs = [])\n'
	(tmp_path / "manual_build_file_contents").write_text(manual, encoding="utf-8")

	report = generate_v0(GenerateOptions(root_dir=tmp_path))

	assert report.manual_contents
	text = (tmp_path / "BUILD.bazel").read_text(encoding="utf-8")
	assert text.endswith("\n\n" + manual)


def test_generate_without_node_modules_emits_preamble_only(tmp_path: Path) -> None:
	report = generate_v0(GenerateOptions(root_dir=tmp_path))

	assert report.ok
	assert report.package_count == 0
	text = (tmp_path / "BUILD.bazel").read_text(encoding="utf-8")
	assert "Generated target for npm package" not in text
	assert 'name = "node_modules",' in text


def test_generate_failure_writes_nothing(tmp_path: Path) -> None:
	_write_pkg(tmp_path, "a", dependencies={"missing": "*"})
	out = tmp_path / "BUILD.bazel"
	out.write_text("# previous\n", encoding="utf-8")

	report = generate_v0(GenerateOptions(root_dir=tmp_path))

	assert not report.ok
	assert not report.written
	assert [e.reason_code for e in report.errors] == ["REQUIRED_DEP_MISSING"]
	assert out.read_text(encoding="utf-8") == "# previous\n"


def test_cli_generate_human_and_json(tmp_path: Path, capsys) -> None:
	_sample_tree(tmp_path)
	out = tmp_path / "out" / "BUILD.bazel"

	assert main(["generate", "--root", str(tmp_path), "--out", str(out)]) == 0
	assert f"wrote {out}" in capsys.readouterr().out
	assert out.exists()

	assert main(["generate", "--root", str(tmp_path), "--out", str(out), "--json"]) == 0
	report = json.loads(capsys.readouterr().out)
	assert report["ok"] is True
	assert report["binary_count"] == 1


def test_cli_generate_reports_parse_error(tmp_path: Path, capsys) -> None:
	bad = tmp_path / "node_modules" / "bad"
	bad.mkdir(parents=True)
	(bad / "package.json").write_text("{", encoding="utf-8")

	assert main(["generate", "--root", str(tmp_path)]) == 2
	err = capsys.readouterr().err
	assert "[PACKAGE_JSON_INVALID]" in err
	assert "package_dir=bad" in err
	assert not (tmp_path / "BUILD.bazel").exists()


def test_cli_graph_json(tmp_path: Path, capsys) -> None:
	_sample_tree(tmp_path)
	_write_pkg(tmp_path, "left/node_modules/right")

	assert main(["graph", "--root", str(tmp_path), "--json"]) == 0
	graph = json.loads(capsys.readouterr().out)
	assert graph["format"] == "nmbuild-graph"
	assert graph["version"] == 0
	by_dir = {p["dir"]: p for p in graph["packages"]}
	assert by_dir["left"]["dependencies"] == ["left/node_modules/right"]
	assert by_dir["left/node_modules/right"]["nested"] is True
	assert by_dir["@s/a"]["dependencies"] == ["left", "left/node_modules/right"]
	assert by_dir["left"]["executables"] == {"left": "bin/left.js"}
	assert graph["scopes"] == {"@s": ["@s/a"]}


def test_python_m_entrypoint(tmp_path: Path) -> None:
	_sample_tree(tmp_path)
	cp = _run_nmbuild(["graph", "--root", str(tmp_path)])
	assert cp.returncode == 0, cp.stderr
	assert json.loads(cp.stdout)["scopes"] == {"@s": ["@s/a"]}

	_write_pkg(tmp_path, "@s/b", peerDependencies={"react": ">=16"})
	cp = _run_nmbuild(["generate", "--root", str(tmp_path)])
	assert cp.returncode == 2
	assert "REQUIRED_DEP_MISSING" in cp.stderr
	assert "dependency=react" in cp.stderr
	assert not (tmp_path / "BUILD.bazel").exists()


def test_cli_generate_unwritable_out_leaves_no_temp_file(tmp_path: Path, capsys) -> None:
	_sample_tree(tmp_path)
	out = tmp_path / "out"
	out.mkdir()

	assert main(["generate", "--root", str(tmp_path), "--out", str(out)]) == 2
	err = capsys.readouterr().err
	assert "[BUILD_FILE_UNWRITABLE]" in err
	assert f"artifact_path={out}" in err
	assert out.is_dir()
	assert not list(tmp_path.glob("*.tmp.*"))


def test_generate_undecodable_manual_contents_is_fatal(tmp_path: Path) -> None:
	_sample_tree(tmp_path)
	manual = tmp_path / "manual_build_file_contents"
	manual.write_bytes(b"\xff\xfe")

	report = generate_v0(GenerateOptions(root_dir=tmp_path))

	assert not report.ok
	assert [e.reason_code for e in report.errors] == ["MANUAL_CONTENTS_UNREADABLE"]
	assert report.errors[0].artifact_path == str(manual)
	assert not (tmp_path / "BUILD.bazel").exists()


def test_generate_ignores_directory_at_manual_path(tmp_path: Path) -> None:
	_sample_tree(tmp_path)
	(tmp_path / "manual_build_file_contents").mkdir()

	report = generate_v0(GenerateOptions(root_dir=tmp_path))

	assert report.ok
	assert not report.manual_contents
