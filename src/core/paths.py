"""Destination key derivation."""

import posixpath

ARCHIVE_EXTENSION: str = ".tar.gz"


def _to_forward_slashes(path: str) -> str:
    return path.replace("\\", "/")


def join_key(*parts: str) -> str:
    """Join key segments with ``/`` and normalize the result.

    Empty segments are ignored and a leading ``/`` on a later segment does not reset
    the path, so ``join_key("out", "/a.txt")`` is ``"out/a.txt"``. Backslashes are
    converted to forward slashes after normalization.
    """
    joined = "/".join(part for part in parts if part)
    if not joined:
        return "."
    normalized = posixpath.normpath(joined)
    # normpath drops a trailing slash, keep it for directory-like keys
    if joined.endswith("/") and not normalized.endswith("/"):
        normalized = f"{normalized}/"
    return _to_forward_slashes(normalized)


def split_archive_key(key: str) -> tuple[str, str]:
    """Return the directory and the archive name without its extension.

    ``.tar.gz`` is stripped as a whole, any other key loses only its last extension.

    Examples
    --------
    >>> split_archive_key("data/archive.tar.gz")
    ('data', 'archive')
    >>> split_archive_key("backups/site.tgz")
    ('backups', 'site')
    """
    dirname, filename = posixpath.split(key)
    if filename.endswith(ARCHIVE_EXTENSION) and filename != ARCHIVE_EXTENSION:
        basename = filename[: -len(ARCHIVE_EXTENSION)]
    else:
        basename = posixpath.splitext(filename)[0]
    return dirname, basename


def build_target_prefix(
    target_prefix: str,
    source_key: str,
    include_dirname: bool = False,
    include_basename: bool = False,
) -> str:
    """Compute the prefix every entry of the archive is written under.

    Parameters
    ----------
    target_prefix : str
        Configured destination prefix.
    source_key : str
        Key of the archive in the source bucket.
    include_dirname : bool, optional
        Append the archive's directory, by default False.
    include_basename : bool, optional
        Append the archive's name without extension, by default False.

    Returns
    -------
    str
        The slash-normalized prefix.
    """
    dirname, basename = split_archive_key(source_key)
    extra_paths = [
        dirname if include_dirname else "",
        basename if include_basename else "",
    ]
    return join_key(target_prefix, *extra_paths)


def build_target_key(target_prefix: str, entry_name: str) -> str:
    """Destination key of one entry: the prefix joined with the entry's name."""
    return join_key(target_prefix, entry_name)
