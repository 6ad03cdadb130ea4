"""In-memory directory trees."""

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, List, Optional, Set, Tuple


@dataclass
class PathElement:
    """
    A node of a directory tree.

    Attributes:
        path: Path of the entry
        is_directory: Whether the entry is a directory
        children: Child nodes; directories first, then files, each sorted
            by name
    """
    path: Path
    is_directory: bool
    children: List["PathElement"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def is_file(self) -> bool:
        return not self.is_directory

    def walk(self) -> Iterator["PathElement"]:
        """Yield this node and all descendants in pre-order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def find(self, path: Path) -> Optional["PathElement"]:
        """Return the node for ``path`` in this tree, or None."""
        path = Path(path)
        for node in self.walk():
            if node.path == path:
                return node
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        result = {
            "path": str(self.path),
            "is_directory": self.is_directory,
            "children": [],
        }
        stack = [(self, result)]
        while stack:
            node, data = stack.pop()
            for child in node.children:
                child_data = {
                    "path": str(child.path),
                    "is_directory": child.is_directory,
                    "children": [],
                }
                data["children"].append(child_data)
                stack.append((child, child_data))
        return result


class PathTreeBuilder:
    """
    Lists a directory tree with an explicit work stack.

    Symlinked directories are reported as non-directory leaves unless
    ``follow_symlinks`` is set; when following, a directory already listed
    (same device and inode) earlier in pre-order is kept as a node without
    children.
    """

    def __init__(self, follow_symlinks: bool = False):
        self.follow_symlinks = follow_symlinks

    def build(self, root: Path) -> PathElement:
        """
        Build the tree rooted at ``root``.

        Raises:
            OSError: If any directory of the tree cannot be listed
        """
        root = Path(root)
        root_stat = root.stat()
        node = PathElement(root, stat.S_ISDIR(root_stat.st_mode))
        if not node.is_directory:
            return node

        visited: Set[Tuple[int, int]] = {(root_stat.st_dev, root_stat.st_ino)}
        stack: List[Tuple[PathElement, Optional[Tuple[int, int]]]] = [(node, None)]

        while stack:
            parent, key = stack.pop()
            if key is not None:
                if key in visited:
                    continue
                visited.add(key)

            directories, files = self._list(parent.path)
            parent.children = directories + files
            stack.extend(reversed(self._descendable(directories)))

        return node

    def _list(self, directory: Path) -> Tuple[List[PathElement], List[PathElement]]:
        directories = []
        files = []
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_dir(follow_symlinks=self.follow_symlinks):
                    directories.append(PathElement(Path(entry.path), True))
                else:
                    files.append(PathElement(Path(entry.path), False))
        directories.sort(key=lambda e: e.name)
        files.sort(key=lambda e: e.name)
        return directories, files

    def _descendable(self, directories: List[PathElement]) -> List[Tuple[PathElement, Optional[Tuple[int, int]]]]:
        if not self.follow_symlinks:
            return [(d, None) for d in directories]
        result = []
        for directory in directories:
            st = directory.path.stat()
            result.append((directory, (st.st_dev, st.st_ino)))
        return result
