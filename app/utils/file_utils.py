import os
import re
import uuid
from pathlib import Path
from typing import Tuple

_PATH_SEPARATORS = re.compile(r"[\\/]")
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

def sanitize_filename(raw_filename: str) -> Tuple[str, str]:
    """
    Turn an untrusted client filename into a safe base name and extension.

    Directory components are dropped and the extension is split off the
    raw name, then every character outside [A-Za-z0-9._-] is removed from
    base and extension separately, so a base made only of unsafe
    characters still keeps its extension. The extension is returned
    lowercased and keeps its leading dot; it is empty when the name has none.

    Returns:
        Tuple containing (base, extension)
    """
    name = _PATH_SEPARATORS.split(raw_filename or "")[-1]
    base, extension = os.path.splitext(name)
    base = _UNSAFE_CHARS.sub("", base)
    extension = _UNSAFE_CHARS.sub("", extension)
    if extension == ".":
        extension = ""
    return base, extension.lower()

def new_token() -> str:
    """
    Generate a collision-resistant token for a stored file name.
    """
    return str(uuid.uuid4())

def build_unique_name(base: str, extension: str, token: str) -> str:
    """
    Join a sanitized base, a unique token and the extension into a file name.
    The result is never empty, even when sanitizing removed the whole base.
    """
    if not base:
        return f"{token}{extension}"
    return f"{base}-{token}{extension}"

def ensure_directory_exists(directory_path: Path) -> None:
    """
    Ensure that a directory exists, creating it if necessary.
    """
    directory_path.mkdir(parents=True, exist_ok=True)
