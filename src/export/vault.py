"""Markdown vault access.

Notes are markdown files with a YAML front matter header:

    ---
    note-kind: readwise
    __readwise_fk: 123
    ---
    body...

Only the `.md` files outside hidden folders (such as `.obsidian` and
`.trash`) are considered part of the vault.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from common.logger import get_logger

logger = get_logger(__name__)

FRONT_MATTER_DELIMITER = "---"


class VaultError(Exception):
    """A note could not be parsed."""

    pass


class WriteOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass
class Note:
    """A note as it currently exists on disk."""

    path: Path
    metadata: dict[str, Any]
    body: str


@dataclass
class NoteToWrite:
    """A rendered note waiting to be written."""

    foreign_key: int
    default_path: Path
    metadata: dict[str, Any]
    contents: str


def split_front_matter(text: str) -> tuple[str | None, str]:
    """Split a note into its raw front matter and body.

    Returns:
        (header, body); header is None when the note has no front matter
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip("\r\n") != FRONT_MATTER_DELIMITER:
        return None, text

    for i in range(1, len(lines)):
        if lines[i].rstrip("\r\n") == FRONT_MATTER_DELIMITER:
            return "".join(lines[1:i]), "".join(lines[i + 1 :])

    return None, text


def parse_note(path: Path, text: str) -> Note:
    """Parse note text.

    Raises:
        VaultError: If the front matter is not a YAML mapping
    """
    header, body = split_front_matter(text)
    if header is None:
        return Note(path=path, metadata={}, body=body)

    try:
        metadata = yaml.safe_load(header)
    except yaml.YAMLError as e:
        raise VaultError(f"Invalid front matter in {path}: {e}") from e

    if metadata is None:
        metadata = {}
    if not isinstance(metadata, dict):
        raise VaultError(f"Front matter in {path} is not a mapping")
    return Note(path=path, metadata=metadata, body=body)


def render_note(metadata: dict[str, Any], body: str) -> str:
    try:
        header = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True)
    except yaml.YAMLError as e:
        raise VaultError(f"Front matter cannot be written as YAML: {e}") from e
    return f"{FRONT_MATTER_DELIMITER}\n{header}{FRONT_MATTER_DELIMITER}\n{body}"


def _foreign_key(value: Any) -> int | None:
    # YAML booleans are ints in Python
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class Vault:
    """A directory tree of markdown notes."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def iter_note_paths(self):
        for path in sorted(self.root.rglob("*.md")):
            relative = path.relative_to(self.root)
            if any(part.startswith(".") for part in relative.parts[:-1]):
                continue
            yield path

    def find_by(self, type_key: str, note_type: str, id_key: str) -> dict[int, Path]:
        """Index notes of one kind by the foreign key stored in their front matter.

        Args:
            type_key: Front matter key holding the note kind
            note_type: Kind value to match
            id_key: Front matter key holding the foreign key

        Returns:
            Mapping of foreign key to note path
        """
        found: dict[int, Path] = {}

        for path in self.iter_note_paths():
            try:
                note = self.read_note(path)
            except (VaultError, OSError, UnicodeDecodeError) as e:
                logger.debug(f"Skipping unreadable note {path}: {e}")
                continue

            if note.metadata.get(type_key) != note_type or id_key not in note.metadata:
                continue

            key = _foreign_key(note.metadata[id_key])
            if key is None:
                logger.warning(f"Note {path} has a non-numeric {id_key}, ignoring it")
                continue

            if key in found:
                logger.warning(f"Notes {found[key]} and {path} share {id_key}={key}, keeping the first")
                continue
            found[key] = path

        logger.debug(f"Found {len(found)} existing {note_type} notes under {self.root}")
        return found

    def read_note(self, path: str | Path) -> Note:
        path = Path(path)
        return parse_note(path, path.read_text(encoding="utf-8"))

    def write_note(self, note: NoteToWrite, existing: Path | None = None) -> WriteOutcome:
        """Write a note in place of an existing one, or at its default path.

        Raises:
            VaultError: If the default path has no parent folder
            OSError: If writing fails
        """
        if existing is not None:
            outcome, path = WriteOutcome.UPDATED, Path(existing)
        else:
            parent = note.default_path.parent
            if parent == Path(""):
                raise VaultError(f"Invalid note location {note.default_path}, lacks a parent folder")
            parent.mkdir(parents=True, exist_ok=True)
            outcome, path = WriteOutcome.CREATED, note.default_path

        logger.debug(f"Writing note to {path}")
        path.write_text(render_note(note.metadata, note.contents), encoding="utf-8")
        return outcome

    def write_metadata(self, path: str | Path, metadata: dict[str, Any]) -> None:
        """Replace a note's front matter, keeping its body as is."""
        note = self.read_note(path)
        note.path.write_text(render_note(metadata, note.body), encoding="utf-8")
