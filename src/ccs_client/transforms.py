"""
Pluggable byte transforms applied to every column value before submission.

A transform is any ``Callable[[bytes], bytes]``. ``None`` means values are
stored verbatim.
"""

from __future__ import annotations

import gzip
import zlib
from typing import Callable, Optional

ByteTransform = Callable[[bytes], bytes]


def gzip_transform(data: bytes) -> bytes:
    # mtime=0 keeps output stable for identical input
    return gzip.compress(data, mtime=0)


def zlib_transform(data: bytes) -> bytes:
    return zlib.compress(data)


TRANSFORMS: dict[str, Optional[ByteTransform]] = {
    "identity": None,
    "gzip": gzip_transform,
    "zlib": zlib_transform,
}


def resolve_transform(name: str) -> Optional[ByteTransform]:
    try:
        return TRANSFORMS[name]
    except KeyError:
        raise ValueError(f"Unknown serializer: {name}. Must be one of {sorted(TRANSFORMS)}")


def apply(transform: Optional[ByteTransform], data: bytes) -> bytes:
    return transform(data) if transform is not None else data
