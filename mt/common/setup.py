import os
import sys
from pathlib import Path
from dataclasses import dataclass

# Lil helper function to create missing directories if missing, and optionally error out when a path
# doesn't exist.
def ensure_directory(path: Path,must_exist=False):
    if must_exist:
        if not path.exists():
            raise FileNotFoundError(f"Required directory is missing: {path}")
        if not path.is_dir():
            raise NotADirectoryError(f"Expected a directory, got a file: {path}")
    else:
        path.mkdir(parents=True,exist_ok=True)
    return path

# Picks the per-user data folder. MEETINGTIMER_HOME always wins, so tests and portable installs can
# redirect everything in one place.
def _data_root() -> Path:
    override = os.getenv("MEETINGTIMER_HOME")
    if override:
        return Path(override)
    if sys.platform.startswith("win"):
        appdata = os.getenv("APPDATA")
        if not appdata:
            raise RuntimeError("Missing APPDATA environment variable, cannot determine data directories.")
        return Path(appdata) / "MeetingTimer"
    xdg = os.getenv("XDG_DATA_HOME")
    base = Path(xdg) if xdg else Path.home() / ".local" / "share"
    return base / "meetingtimer"

# Dataclass for accessing paths across program.
@dataclass(frozen=False)
class ProjectPaths:

    data: Path
    logs: Path
    store: Path

    @property
    def settings(self) -> Path:
        return self.data / "settings.json"

    @staticmethod
    def build(root: Path | None = None):
        # Folder for all meeting timer user-specific and session related stuff
        data = ensure_directory(root or _data_root())

        # Folders within the data folder
        logs = ensure_directory(data / "logs")
        store = ensure_directory(data / "store")

        return ProjectPaths(
            data = data,
            logs = logs,
            store = store,
        )
PATHS = ProjectPaths.build()
