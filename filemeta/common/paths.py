"""URI-aware path helpers for table and partition locations.

Table locations arrive either as plain local paths (``/warehouse/t``) or as
filesystem URIs (``hdfs://nn:8020/warehouse/t``, ``s3a://bucket/t``). These
helpers keep the scheme and authority intact and operate on the path part
with POSIX semantics, so relative paths always use ``/`` separators.

Usage:
    from filemeta.common.paths import relativize, join_path

    rel = relativize("hdfs://nn:8020/wh/t", "hdfs://nn:8020/wh/t/year=2009/a.txt")
    # rel == "year=2009/a.txt"
"""

import posixpath
from urllib.parse import urlsplit

HIDDEN_PREFIXES = (".", "_")


def split_uri(path: str) -> tuple[str, str, str]:
    """Split a location into (scheme, authority, path).

    Plain local paths return an empty scheme and authority. The path part is
    normalized (duplicate and trailing slashes removed, "." segments dropped).

    Args:
        path: Local path or filesystem URI

    Returns:
        Tuple of scheme (lower-cased), authority and normalized path
    """
    if "://" not in path:
        return "", "", _normalize(path)
    parts = urlsplit(path)
    return parts.scheme.lower(), parts.netloc, _normalize(parts.path or "/")


def _normalize(path: str) -> str:
    if not path:
        return ""
    normalized = posixpath.normpath(path)
    # normpath keeps a leading "//" (POSIX allows it to be special); collapse it
    if normalized.startswith("//"):
        normalized = "/" + normalized.lstrip("/")
    return normalized


def storage_root(path: str) -> str:
    """Return the ``scheme://authority`` prefix of a location ("" for local paths)."""
    scheme, authority, _ = split_uri(path)
    if not scheme:
        return ""
    return f"{scheme}://{authority}"


def normalize_location(path: str) -> str:
    """Return a canonical form of a location without a trailing slash."""
    root = storage_root(path)
    _, _, path_part = split_uri(path)
    if root and path_part in ("", "/"):
        return root + "/"
    return root + path_part


def join_path(root: str, relative_path: str) -> str:
    """Join a relative path (``/``-separated) onto a location."""
    base = normalize_location(root)
    if not relative_path:
        return base
    if base.endswith("/"):
        return base + relative_path
    return f"{base}/{relative_path}"


def relativize(root: str, path: str) -> str | None:
    """Return path relative to root, or None when path is not under root.

    Both locations must agree on scheme and authority. A path equal to the
    root itself is not considered to be under it.
    """
    root_scheme, root_authority, root_path = split_uri(root)
    scheme, authority, file_path = split_uri(path)
    if (root_scheme or "file") != (scheme or "file"):
        return None
    if root_authority.lower() != authority.lower():
        return None
    prefix = root_path.rstrip("/") + "/"
    if not file_path.startswith(prefix):
        return None
    relative = file_path[len(prefix):]
    if not relative or relative.split("/")[0] == "..":
        return None
    return relative


def is_hidden_name(name: str) -> bool:
    """Return True for staging/temporary names written by table-writing engines."""
    return name.startswith(HIDDEN_PREFIXES)


def parent_dir(relative_path: str) -> str:
    """Return the directory part of a relative path ("" for top-level files)."""
    return posixpath.dirname(relative_path)


def base_name(path: str) -> str:
    return posixpath.basename(path.rstrip("/"))
