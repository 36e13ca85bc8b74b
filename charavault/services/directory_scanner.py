"""
Directory Scanner
=================

Builds a flat, index-addressed tree of a project directory.

Nodes live in one list (the arena); parent/child relations are stored as
index pairs, so the tree holds no object cycles and can be walked or
serialized without recursion.
"""

import logging
import mimetypes
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

ROOT_INDEX = 0


@dataclass
class TreeNode:
    """One file or directory in a scanned tree."""
    index: int
    name: str
    relative_path: str  # POSIX-style, "" for the root
    kind: str  # "file" | "directory"
    parent: Optional[int]
    size: Optional[int] = None
    mime_type: Optional[str] = None
    extension: Optional[str] = None
    last_modified: Optional[datetime] = None

    @property
    def is_dir(self) -> bool:
        return self.kind == "directory"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.index,
            "name": self.name,
            "path": self.relative_path,
            "type": self.kind,
            "size": self.size,
            "mimeType": self.mime_type,
            "extension": self.extension,
            "lastModified": self.last_modified.isoformat() if self.last_modified else None,
        }


@dataclass
class DirectoryTree:
    """Arena of nodes plus ``(parent, child)`` index pairs."""
    root: Path
    nodes: List[TreeNode] = field(default_factory=list)
    edges: List[Tuple[int, int]] = field(default_factory=list)

    def children(self, index: int) -> List[TreeNode]:
        return [self.nodes[child] for parent, child in self.edges if parent == index]

    def files(self) -> List[TreeNode]:
        return [node for node in self.nodes if node.kind == "file"]

    def find(self, relative_path: str) -> Optional[TreeNode]:
        for node in self.nodes:
            if node.relative_path == relative_path:
                return node
        return None

    def absolute_path(self, node: TreeNode) -> Path:
        return self.root / node.relative_path if node.relative_path else self.root

    def to_nested(self) -> Dict[str, Any]:
        """Nested dict form for API clients, built without recursion."""
        rendered = [node.to_dict() for node in self.nodes]
        for node, item in zip(self.nodes, rendered):
            if node.is_dir:
                item["children"] = []
        for parent, child in self.edges:
            rendered[parent]["children"].append(rendered[child])
        return rendered[ROOT_INDEX]


def _modified(stat: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)


class DirectoryScanner:
    """Iterative directory walker producing a DirectoryTree."""

    def __init__(self, include_hidden: bool = False, extensions: Optional[Iterable[str]] = None):
        """
        Args:
            include_hidden: Include dot-files and dot-directories
            extensions: If given, only files with these (lower-case, dotted)
                extensions are listed; directories are always listed
        """
        self.include_hidden = include_hidden
        self.extensions = {ext.lower() for ext in extensions} if extensions else None

    def _wanted_file(self, name: str) -> bool:
        if self.extensions is None:
            return True
        return Path(name).suffix.lower() in self.extensions

    def scan(self, root: Path) -> DirectoryTree:
        """
        Scan ``root``. Unreadable entries are logged and skipped; symlinked
        directories are not followed.

        Raises:
            NotADirectoryError: If root is not a directory
        """
        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        tree = DirectoryTree(root=root)
        tree.nodes.append(TreeNode(
            index=ROOT_INDEX,
            name=root.name,
            relative_path="",
            kind="directory",
            parent=None,
            last_modified=_modified(root.stat()),
        ))

        stack: List[Tuple[int, Path]] = [(ROOT_INDEX, root)]
        while stack:
            parent_index, directory = stack.pop()
            parent_rel = tree.nodes[parent_index].relative_path

            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name.lower())
            except OSError as e:
                logger.warning(f"Cannot read directory {directory}: {e}")
                continue

            for entry in entries:
                if not self.include_hidden and entry.name.startswith("."):
                    continue

                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                    if not is_dir and not entry.is_file():
                        continue
                    if not is_dir and not self._wanted_file(entry.name):
                        continue
                    stat = entry.stat()
                except OSError as e:
                    logger.warning(f"Cannot stat {entry.path}: {e}")
                    continue

                index = len(tree.nodes)
                relative_path = f"{parent_rel}/{entry.name}" if parent_rel else entry.name
                node = TreeNode(
                    index=index,
                    name=entry.name,
                    relative_path=relative_path,
                    kind="directory" if is_dir else "file",
                    parent=parent_index,
                    last_modified=_modified(stat),
                )
                if not is_dir:
                    suffix = Path(entry.name).suffix.lower()
                    node.size = stat.st_size
                    node.extension = suffix or None
                    node.mime_type = mimetypes.guess_type(entry.name)[0]

                tree.nodes.append(node)
                tree.edges.append((parent_index, index))

                if is_dir:
                    stack.append((index, Path(entry.path)))

        logger.debug(f"Scanned {root}: {len(tree.nodes)} node(s)")
        return tree
