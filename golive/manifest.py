# golive - live reload supervisor for Go programs
# Copyright (C) 2026 golive Authors
# SPDX-License-Identifier: Apache-2.0

"""Manifest (go.mod) location, parsing and watch-root resolution.

The resolver turns a program path into the list of directories that must
be watched: the module root plus every local ``replace`` target declared
in the module's go.mod.  Versioned (registry-hosted) replacements are
never watched.
"""

from __future__ import annotations

import logging
import os
import string
from dataclasses import dataclass
from pathlib import Path
from typing import NamedTuple

from golive.exceptions import ManifestNotFoundError, ManifestParseError
from golive.toolchain import GoToolchain

logger = logging.getLogger(__name__)

MANIFEST_NAME = "go.mod"

KNOWN_DIRECTIVES = frozenset({
    "module",
    "go",
    "toolchain",
    "godebug",
    "require",
    "exclude",
    "replace",
    "retract",
    "tool",
    "ignore",
})

_REPLACE_USAGE = (
    "usage: replace module/path [v1.2.3] => other/module v1.4\n"
    "\t or replace module/path [v1.2.3] => ../local/directory"
)


# ── Data model ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Replacement:
    """A single ``replace`` directive."""
    old_path: str
    old_version: str | None
    new_path: str
    new_version: str | None
    line: int = 0

    @property
    def is_local(self) -> bool:
        """True when the replacement points at a filesystem directory."""
        return self.new_version is None and is_directory_path(self.new_path)


@dataclass(frozen=True)
class ProjectManifest:
    """Parsed go.mod: module path and replace rules, in file order."""
    path: Path
    module: str | None
    replacements: tuple[Replacement, ...] = ()

    @property
    def directory(self) -> Path:
        return self.path.parent

    def local_replacements(self) -> list[Replacement]:
        return [r for r in self.replacements if r.is_local]


def is_directory_path(path: str) -> bool:
    """Whether a replacement target names a directory rather than a module."""
    if path in (".", ".."):
        return True
    if path.startswith(("./", "../", ".\\", "..\\", "/")):
        return True
    return os.path.isabs(path)


# ── Lexer ──────────────────────────────────────────────────────────


class _Token(NamedTuple):
    kind: str  # "word", "string", "=>", "(", ")"
    text: str


_SIMPLE_ESCAPES = {
    "a": 0x07, "b": 0x08, "f": 0x0C, "n": 0x0A, "r": 0x0D, "t": 0x09, "v": 0x0B,
    "\\": 0x5C, '"': 0x22,
}
_HEX_WIDTH = {"x": 2, "u": 4, "U": 8}


def _unquote(body: str) -> str:
    """Decode the escapes of a Go interpreted string literal, quotes stripped.

    ``\\x`` and octal escapes produce raw bytes; the result must be UTF-8.

    Raises:
        ValueError: Unknown or malformed escape sequence.
    """
    out = bytearray()
    i, n = 0, len(body)
    while i < n:
        c = body[i]
        if c != "\\":
            out += c.encode("utf-8")
            i += 1
            continue
        if i + 1 >= n:
            raise ValueError("trailing backslash")
        e = body[i + 1]
        i += 2
        if e in _SIMPLE_ESCAPES:
            out.append(_SIMPLE_ESCAPES[e])
        elif e in _HEX_WIDTH:
            width = _HEX_WIDTH[e]
            digits = body[i:i + width]
            if len(digits) != width or not all(d in string.hexdigits for d in digits):
                raise ValueError(f"invalid \\{e} escape")
            value = int(digits, 16)
            i += width
            if e == "x":
                out.append(value)
            elif value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
                raise ValueError(f"invalid code point \\{e}{digits}")
            else:
                out += chr(value).encode("utf-8")
        elif e in "01234567":
            digits = body[i - 1:i + 2]
            if len(digits) != 3 or not all(d in "01234567" for d in digits):
                raise ValueError("invalid octal escape")
            value = int(digits, 8)
            if value > 0xFF:
                raise ValueError(f"octal escape \\{digits} out of range")
            out.append(value)
            i += 2
        else:
            raise ValueError(f"unknown escape \\{e}")
    return out.decode("utf-8")


def _tokenize(line: str, lineno: int, path: Path | None) -> list[_Token]:
    tokens: list[_Token] = []
    i, n = 0, len(line)
    while i < n:
        c = line[i]
        if c in " \t\r\ufeff":
            i += 1
        elif line.startswith("//", i):
            break
        elif line.startswith("=>", i):
            tokens.append(_Token("=>", "=>"))
            i += 2
        elif c in "()":
            tokens.append(_Token(c, c))
            i += 1
        elif c == '"':
            j = i + 1
            while j < n and line[j] != '"':
                j += 2 if line[j] == "\\" else 1
            if j >= n:
                raise ManifestParseError("unterminated quoted string", path=path, line=lineno)
            try:
                text = _unquote(line[i + 1:j])
            except ValueError as e:
                raise ManifestParseError(
                    f"invalid quoted string: {e}", path=path, line=lineno,
                ) from e
            tokens.append(_Token("string", text))
            i = j + 1
        elif c == "`":
            j = line.find("`", i + 1)
            if j < 0:
                raise ManifestParseError("unterminated raw string", path=path, line=lineno)
            tokens.append(_Token("string", line[i + 1:j]))
            i = j + 1
        else:
            j = i
            while (
                j < n
                and line[j] not in ' \t\r"`()'
                and not line.startswith("//", j)
                and not line.startswith("=>", j)
            ):
                j += 1
            tokens.append(_Token("word", line[i:j]))
            i = j
    return tokens


# ── Parser ─────────────────────────────────────────────────────────


def _parse_replace(args: list[_Token], lineno: int, path: Path | None) -> Replacement:
    arrows = [i for i, tok in enumerate(args) if tok.kind == "=>"]
    if len(arrows) != 1:
        raise ManifestParseError(_REPLACE_USAGE, path=path, line=lineno)
    left, right = args[:arrows[0]], args[arrows[0] + 1:]
    if len(left) not in (1, 2) or len(right) not in (1, 2):
        raise ManifestParseError(_REPLACE_USAGE, path=path, line=lineno)

    new_path = right[0].text
    new_version = right[1].text if len(right) == 2 else None
    if new_version is None and not is_directory_path(new_path):
        raise ManifestParseError(
            "replacement module without version must be directory path "
            "(rooted or starting with ./ or ../)",
            path=path, line=lineno,
        )
    if new_version is not None and is_directory_path(new_path):
        raise ManifestParseError(
            "replacement module directory path must not have version",
            path=path, line=lineno,
        )
    return Replacement(
        old_path=left[0].text,
        old_version=left[1].text if len(left) == 2 else None,
        new_path=new_path,
        new_version=new_version,
        line=lineno,
    )


def parse_manifest(text: str, path: Path) -> ProjectManifest:
    """Parse go.mod *text*; *path* locates the module root and error messages.

    Raises:
        ManifestParseError: On any syntax error.
    """
    module: str | None = None
    replacements: list[Replacement] = []
    block_verb: str | None = None
    block_line = 0

    for lineno, raw in enumerate(text.splitlines(), start=1):
        tokens = _tokenize(raw, lineno, path)
        if not tokens:
            continue

        if block_verb is not None:
            if tokens[0].kind == ")":
                if len(tokens) > 1:
                    raise ManifestParseError(
                        "unexpected text after )", path=path, line=lineno,
                    )
                block_verb = None
                continue
            verb, args = block_verb, tokens
        else:
            head = tokens[0]
            if head.kind == ")":
                raise ManifestParseError("unexpected )", path=path, line=lineno)
            if head.kind != "word":
                raise ManifestParseError(
                    f"unexpected {head.text!r}", path=path, line=lineno,
                )
            verb, args = head.text, tokens[1:]
            if verb not in KNOWN_DIRECTIVES:
                raise ManifestParseError(
                    f"unknown directive: {verb}", path=path, line=lineno,
                )
            if len(args) == 1 and args[0].kind == "(":
                block_verb, block_line = verb, lineno
                continue

        if any(tok.kind in ("(", ")") for tok in args):
            raise ManifestParseError("unexpected parenthesis", path=path, line=lineno)

        if verb == "module":
            if module is not None:
                raise ManifestParseError(
                    "repeated module statement", path=path, line=lineno,
                )
            if len(args) != 1 or args[0].kind == "=>":
                raise ManifestParseError(
                    "usage: module module/path", path=path, line=lineno,
                )
            module = args[0].text
        elif verb == "replace":
            replacements.append(_parse_replace(args, lineno, path))
        elif not args:
            raise ManifestParseError(
                f"{verb} directive requires arguments", path=path, line=lineno,
            )

    if block_verb is not None:
        raise ManifestParseError(
            f"unterminated {block_verb} block", path=path, line=block_line,
        )

    return ProjectManifest(path=path, module=module, replacements=tuple(replacements))


def load_manifest(path: Path) -> ProjectManifest:
    """Read and parse the manifest at *path*."""
    path = Path(os.path.abspath(path))
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"cannot read manifest: {e}", path=path) from e
    manifest = parse_manifest(text, path)
    logger.debug(
        "Parsed %s: module=%s replacements=%d",
        path, manifest.module, len(manifest.replacements),
    )
    return manifest


def watch_roots(manifest: ProjectManifest) -> list[Path]:
    """Return the deduplicated directories to watch for *manifest*.

    The module root comes first, followed by local replacement targets in
    manifest order.  Targets that do not exist are skipped with a warning.
    """
    roots = [manifest.directory]
    for rep in manifest.replacements:
        if not rep.is_local:
            logger.debug(
                "Not watching module replacement %s => %s %s",
                rep.old_path, rep.new_path, rep.new_version,
            )
            continue

        target = Path(os.path.normpath(os.path.join(manifest.directory, rep.new_path)))
        if not target.exists():
            logger.warning(
                "Replacement target for %s does not exist, skipping: %s",
                rep.old_path, target,
            )
            continue
        if not target.is_dir():
            logger.warning(
                "Replacement target for %s is not a directory: %s",
                rep.old_path, target,
            )
        if target not in roots:
            roots.append(target)
    return roots


# ── Resolver ───────────────────────────────────────────────────────


class ManifestResolver:
    """Locate a program's go.mod and derive the directories to watch."""

    def __init__(
        self,
        toolchain: GoToolchain | None = None,
        manifest_name: str = MANIFEST_NAME,
    ) -> None:
        self.toolchain = toolchain or GoToolchain()
        self.manifest_name = manifest_name

    def find_manifest(self, program_path: Path | str) -> Path:
        """Locate the manifest owning *program_path*.

        Tries, in order: the toolchain's own answer, the parent directories
        of the program, then each GOPATH entry.

        Raises:
            ManifestNotFoundError: None of the strategies found a manifest.
        """
        program = Path(os.path.abspath(program_path))
        start_dir = program if program.is_dir() else program.parent
        import_path: str | None = None

        if start_dir.is_dir():
            found = self.toolchain.module_manifest(start_dir)
            if found is not None and found.name == self.manifest_name and found.is_file():
                logger.debug("Manifest reported by toolchain: %s", found)
                return found

        for directory in (start_dir, *start_dir.parents):
            candidate = directory / self.manifest_name
            if candidate.is_file():
                logger.debug("Manifest found in parent directory: %s", candidate)
                return candidate

        if start_dir.is_dir():
            import_path = self.toolchain.import_path(start_dir)
        if import_path:
            for entry in self.toolchain.gopath_entries():
                candidate = entry / "src" / import_path / self.manifest_name
                if candidate.is_file():
                    logger.debug("Manifest found in GOPATH: %s", candidate)
                    return candidate

        raise ManifestNotFoundError(
            f"{self.manifest_name} not found in {program} or its parent directories"
        )

    def load(self, manifest_path: Path) -> ProjectManifest:
        return load_manifest(manifest_path)

    def resolve(self, program_path: Path | str) -> list[Path]:
        """Return the watch roots for *program_path*.

        Raises:
            ManifestNotFoundError: No manifest could be located.
            ManifestParseError: The manifest is unreadable or malformed.
        """
        manifest = self.load(self.find_manifest(program_path))
        return watch_roots(manifest)
