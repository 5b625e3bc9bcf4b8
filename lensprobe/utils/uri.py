from pathlib import Path
from urllib.parse import quote


def path_to_uri(path: str | Path) -> str:
    path = Path(path).resolve()
    return "file://" + quote(str(path), safe="/:")
