# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class NmBuildError(Exception):
	"""
	A structured, serializable error for nmbuild.

	Every fatal condition carries a stable `reason_code` plus enough context
	(package directory, dependency name, file path) to act on it.
	"""

	reason_code: str
	message: str
	package_dir: str | None = None
	dependency: str | None = None
	artifact_path: str | None = None

	def __str__(self) -> str:
		return self.format_human()

	def to_dict(self) -> dict[str, Any]:
		return {
			"reason_code": self.reason_code,
			"message": self.message,
			"package_dir": self.package_dir,
			"dependency": self.dependency,
			"artifact_path": self.artifact_path,
		}

	def format_human(self) -> str:
		parts: list[str] = [f"[{self.reason_code}] {self.message}"]
		if self.package_dir:
			parts.append(f"package_dir={self.package_dir}")
		if self.dependency:
			parts.append(f"dependency={self.dependency}")
		if self.artifact_path:
			parts.append(f"artifact_path={self.artifact_path}")
		return " ".join(parts)


@dataclass(frozen=True)
class PackageParseError(NmBuildError):
	"""A package.json that cannot be read or does not have the expected shape."""


@dataclass(frozen=True)
class ResolutionError(NmBuildError):
	"""A required (or peer) dependency that is installed nowhere visible to its dependent."""
