"""Project context for locating the .algo-did configuration directory."""

from pathlib import Path
from typing import Optional

from .constants import ALGO_DID_DIR, CONFIG_FILE


class ProjectContext:
    """Manages project root discovery and path resolution."""

    def __init__(self, start_path: Optional[Path] = None):
        """Initialize context by finding the project root.

        Args:
            start_path: Path to start searching for project root

        Raises:
            ValueError: If no .algo-did directory exists in start_path or above
        """
        self.root = self._find_root(start_path or Path.cwd())
        if not self.root:
            raise ValueError(f"Not inside an algo-did project (no {ALGO_DID_DIR} found)")

    @classmethod
    def is_initialized(cls, path: Optional[Path] = None) -> bool:
        """Check if a specific directory is initialized (without traversing up)."""
        target = path or Path.cwd()
        return (target / ALGO_DID_DIR).exists()

    @classmethod
    def init(cls, path: Optional[Path] = None) -> "ProjectContext":
        """Initialize a new project at the given path."""
        target = path or Path.cwd()
        (target / ALGO_DID_DIR).mkdir(parents=True, exist_ok=True)
        return cls(target)

    @staticmethod
    def _find_root(start: Path) -> Optional[Path]:
        """Nearest directory at or above start holding the marker directory."""
        start = start.resolve()
        for candidate in (start, *start.parents):
            if (candidate / ALGO_DID_DIR).is_dir():
                return candidate
        return None

    @property
    def storage_dir(self) -> Path:
        """Get the project storage directory."""
        return self.root / ALGO_DID_DIR

    @property
    def config_path(self) -> Path:
        """Get path to config file."""
        return self.storage_dir / CONFIG_FILE
