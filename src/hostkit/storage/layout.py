"""On-disk layout of the module storage root."""

import hashlib
import re

from hostkit.config.constants import MODULE_FILE_SUFFIX

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_-]+$")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


def module_file_name(key: str) -> str:
    """Deterministic file name for a module key.

    Keys made only of filename-safe characters map to ``<key>.module.py``.
    Anything else is slugified and suffixed with a short digest of the key so
    that two distinct keys never share a file.
    """
    if _SAFE_KEY.match(key):
        return f"{key}{MODULE_FILE_SUFFIX}"
    slug = _UNSAFE_CHARS.sub("_", key).strip("_") or "module"
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}{MODULE_FILE_SUFFIX}"
