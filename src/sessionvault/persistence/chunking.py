"""Split archives into size-bounded chunks and join them back.

``join(split(data, n)) == data`` for every ``data`` and every ``n >= 1``.
"""

from collections.abc import Iterable


def split(data: bytes, max_chunk_size: int) -> list[bytes]:
    """Partition ``data`` into consecutive segments of at most ``max_chunk_size``.

    The last segment may be shorter. Empty input yields a single empty segment.

    Raises:
        ValueError: If max_chunk_size is less than 1.
    """
    if max_chunk_size < 1:
        msg = f"max_chunk_size must be >= 1, got {max_chunk_size}"
        raise ValueError(msg)
    if not data:
        return [b""]
    view = memoryview(data)
    return [bytes(view[i : i + max_chunk_size]) for i in range(0, len(data), max_chunk_size)]


def join(chunks: Iterable[bytes]) -> bytes:
    """Concatenate chunks in the order given; callers sort by chunk_index first."""
    return b"".join(chunks)
