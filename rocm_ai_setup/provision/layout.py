"""Per-user directory layout for containerized AI projects."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Any, Optional

from ..constants import Constants
from ..logger import log


@dataclass
class Layout:
    """Projects root and the sub-directories mounted into containers."""
    root: Path
    subdirs: List[str] = field(default_factory=lambda: list(Constants.DEFAULT_LAYOUT_SUBDIRS))

    def __post_init__(self):
        self.root = Path(self.root).expanduser()
        for subdir in self.subdirs:
            if Path(subdir).is_absolute() or ".." in Path(subdir).parts:
                raise ValueError(f"Layout sub-directory must be relative to the projects root: {subdir}")

    @classmethod
    def from_config(cls, layout_config: Dict[str, Any], home: Optional[str] = None) -> "Layout":
        """Layout from the ``Layout`` config section.

        A leading ``~`` is resolved against ``home`` when given, so that
        under sudo the layout lands in the target user's home, not /root.
        """
        root = str(layout_config['projects_dir'])
        if home and (root == "~" or root.startswith("~/")):
            root = home + root[1:]
        return cls(root=root, subdirs=layout_config['subdirectories'])

    def paths(self) -> List[Path]:
        """Root followed by every sub-directory."""
        return [self.root] + [self.root / subdir for subdir in self.subdirs]

    def mounts(self) -> Dict[str, str]:
        """Host path -> container path, one per top-level sub-directory."""
        top_level = []
        for subdir in self.subdirs:
            head = Path(subdir).parts[0]
            if head not in top_level:
                top_level.append(head)
        return {
            str(self.root / head): f"{Constants.CONTAINER_WORKSPACE}/{head}"
            for head in top_level
        }


def create_layout(layout: Layout, dry_run: bool = False) -> List[Path]:
    """Create missing directories; existing ones and their content are untouched.

    Returns:
        The directories that were (or with dry_run would be) created
    """
    created = []
    for path in layout.paths():
        if path.is_dir():
            continue
        if path.exists():
            raise FileExistsError(f"{path} exists and is not a directory")
        if not dry_run:
            path.mkdir(parents=True, exist_ok=True)
        created.append(path)
        log.info(f"{'Would create' if dry_run else 'Created'} {path}")

    if not created:
        log.info(f"Directory layout already complete under {layout.root}")
    return created


def verify_layout(layout: Layout) -> List[Path]:
    """Directories of the layout that do not exist."""
    return [path for path in layout.paths() if not path.is_dir()]
