"""
Genie configuration model — loaded from genie.yml.

Every field has a default, so a repository without a genie.yml behaves
exactly like one with an empty file.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

DEFAULT_SKIP_DIRS = (
    "node_modules",
    "dist",
    "tmp",
    ".git",
    ".devenv",
    ".direnv",
    ".venv",
    "__pycache__",
    "result",   # nix build output symlink
    "repos",    # megarepo member root (symlinked peer repos)
)


class FormatterSettings(BaseModel):
    """External formatter invocation.

    Attributes:
        command:    Executable (shell-split, so extra args are allowed).
        config:     Explicit formatter config path (relative to cwd or absolute).
        timeout:    Seconds before the formatter is abandoned.
        extensions: Target extensions that are piped through the formatter.
    """

    command: str = "oxfmt"
    config: str | None = None
    timeout: float = 30.0
    extensions: list[str] = Field(
        default_factory=lambda: [".json", ".jsonc", ".yml", ".yaml"],
    )


class ReferenceConvention(BaseModel):
    """How a workspace dependency name maps to a tsconfig reference path.

    A dependency ``<scope>/<short>`` is expected as ``../<short>`` when the
    depending package lives under ``<packages_dir>/``.
    """

    scope: str = "@overeng"
    packages_dir: str = "packages/@overeng"


class GenieConfig(BaseModel):
    """Root configuration — loaded from genie.yml."""

    version: int = 1

    formatter: FormatterSettings = Field(default_factory=FormatterSettings)
    skip_dirs: list[str] = Field(default_factory=list)
    repo_root_markers: list[str] = Field(
        default_factory=lambda: ["megarepo.json", ".git"],
    )
    references: ReferenceConvention = Field(default_factory=ReferenceConvention)
    imports: dict[str, str] = Field(default_factory=dict)
    read_only: bool = True

    @property
    def all_skip_dirs(self) -> frozenset[str]:
        """Built-in denylist plus any extra directories from the config."""
        return frozenset(DEFAULT_SKIP_DIRS) | frozenset(self.skip_dirs)
