"""Cache key derivation: structural, filesystem-safe, parameter-addressed."""

from __future__ import annotations

import hashlib
import os
import string
from collections.abc import Mapping
from pathlib import Path, PurePath
from typing import Any

from imgcache.types import TransformOptions, resolve_options

# Keys longer than this switch to the digest form; well under NAME_MAX (255).
MAX_KEY_LENGTH = 200
_DIGEST_PREFIX_LENGTH = 64

_SAFE_CHARS = frozenset(string.ascii_letters + string.digits + ".-")
_FIELD_SEP = "_"
_DIGEST_SEP = "~"


def derive_key(
    source_path: str | Path,
    options: TransformOptions | Mapping[str, Any] | None = None,
    defaults: TransformOptions | None = None,
) -> str:
    """Derive the cache key for a source path and transform options.

    Layout: ``<dir>_<stem>_<suffix>_w<W>_h<H>_q<Q>.<format>``, where ``<suffix>``
    keeps its leading dot so ``snap.`` and ``snap`` stay apart. The path fields are
    escaped so they never contain ``_`` or a path separator, which keeps the
    mapping injective and the key a single path segment.
    """
    opts = resolve_options(options, defaults=defaults)
    path = PurePath(os.fspath(source_path))

    key = _FIELD_SEP.join([
        escape_component(str(path.parent)),
        escape_component(path.stem),
        escape_component(path.suffix),
        f"w{opts.width}",
        f"h{opts.height}",
        f"q{opts.quality}",
    ]) + f".{opts.format.value}"

    if len(key) <= MAX_KEY_LENGTH:
        return key
    return _digest_key(key, opts)


def escape_component(value: str) -> str:
    """Percent-encode every byte outside ``[A-Za-z0-9.-]``.

    The output never contains ``/``, ``\\``, ``_`` or ``~``.
    """
    out: list[str] = []
    for char in value:
        if char in _SAFE_CHARS:
            out.append(char)
        else:
            out.extend(f"%{byte:02X}" for byte in char.encode("utf-8", "surrogateescape"))
    return "".join(out)


def is_digest_key(key: str) -> bool:
    return _DIGEST_SEP in key


def _digest_key(readable_key: str, opts: TransformOptions) -> str:
    # Readable keys never contain "~", so this form cannot collide with them.
    digest = hashlib.sha256(readable_key.encode("utf-8")).hexdigest()
    prefix = readable_key[:_DIGEST_PREFIX_LENGTH]
    return f"{prefix}{_DIGEST_SEP}{digest}.{opts.format.value}"
