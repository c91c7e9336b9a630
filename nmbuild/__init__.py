# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
nmbuild: Bazel targets for an installed node_modules tree.

Pipeline:
  index: scan node_modules into package records
  resolve: flatten each package's transitive dependencies
  targets: derive filegroup / nodejs_binary descriptors
  emit: render them into BUILD.bazel
"""

__all__ = ["index", "resolve", "targets", "emit"]
