"""
Content-Addressed File Naming.

A rendered pronunciation is identified by the backend that produced it,
the IPA, the display text, the language and the storage format version.
Those five values are hashed into a 31-character base-36 token which is
both the file name and the source of the two-level shard prefix:

    token    = base36(sha1("EspeakEngine|/həˈvænə/|Havana|en|1")).zfill(31)
             = "08h2h100e3dgycsfj2my0oc8ll84q3a"
    storage  = {root}/phonos-render/0/8/
    url      = {upload_path}/0/8/08h2h100e3dgycsfj2my0oc8ll84q3a.mp3

Wall-clock time never enters the key; bumping the format version is the
only way to invalidate every stored file at once.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass

STORAGE_PREFIX = "phonos-render"
FILE_EXTENSION = "mp3"
TOKEN_LENGTH = 31

_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    out = []
    while value:
        value, rem = divmod(value, 36)
        out.append(_DIGITS[rem])
    return "".join(reversed(out))


def make_token(backend_name: str, ipa: str, text: str, lang: str, format_version: int) -> str:
    """
    Derive the cache token for one rendering.

    Raises:
        ValueError: If ``backend_name`` is empty.
    """
    if not backend_name:
        raise ValueError("backend_name must be non-empty")
    payload = "|".join([backend_name, ipa, text, lang, str(format_version)])
    digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()
    return _base36(int(digest, 16)).zfill(TOKEN_LENGTH)


@dataclass(frozen=True)
class FileProperties:
    """
    Where a rendered file lives and how it is served.

    Attributes:
        token: Bare cache token.
        file_name: ``{token}.mp3``.
        storage_path: Directory inside the blob store.
        public_url: URL the file is served from.
    """
    token: str
    file_name: str
    storage_path: str
    public_url: str

    @property
    def full_path(self) -> str:
        return f"{self.storage_path}/{self.file_name}"


def derive_properties(
    backend_name: str,
    ipa: str,
    text: str,
    lang: str,
    *,
    format_version: int,
    storage_root: str,
    upload_path: str,
) -> FileProperties:
    """
    Compute file name, storage directory and public URL for a request.

    Pure function: no I/O, and the same arguments always give the same
    result.

    Example:
        >>> p = derive_properties("EspeakEngine", "/həˈvænə/", "Havana", "en",
        ...                       format_version=1, storage_root="/srv",
        ...                       upload_path="/media")
        >>> p.storage_path
        '/srv/phonos-render/0/8'
    """
    token = make_token(backend_name, ipa, text, lang, format_version)
    prefix = f"{token[0]}/{token[1]}"
    file_name = f"{token}.{FILE_EXTENSION}"
    root = storage_root.rstrip("/")
    return FileProperties(
        token=token,
        file_name=file_name,
        storage_path=f"{root}/{STORAGE_PREFIX}/{prefix}",
        public_url=f"{upload_path.rstrip('/')}/{prefix}/{file_name}",
    )
