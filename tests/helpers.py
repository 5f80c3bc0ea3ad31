"""Helpers for building test projects."""

from pathlib import Path

from dwsync.sync.cartridges import CARTRIDGE_NATURE, MARKER_FILE_NAME

PROJECT_FILE = f"""<?xml version="1.0" encoding="UTF-8"?>
<projectDescription>
    <name>{{name}}</name>
    <natures>
        <nature>{CARTRIDGE_NATURE}</nature>
    </natures>
</projectDescription>
"""

PLAIN_PROJECT_FILE = """<?xml version="1.0" encoding="UTF-8"?>
<projectDescription>
    <name>tooling</name>
    <natures>
        <nature>org.eclipse.wst.jsdt.core.jsNature</nature>
    </natures>
</projectDescription>
"""


def make_cartridge(root: Path, relative_path: str) -> Path:
    """Create a cartridge directory with a marker file."""
    directory = root / relative_path
    directory.mkdir(parents=True, exist_ok=True)
    (directory / MARKER_FILE_NAME).write_text(
        PROJECT_FILE.format(name=directory.name), encoding="utf-8"
    )
    return directory


def write_file(path: Path, content: str = "content") -> Path:
    """Create a file and its parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
