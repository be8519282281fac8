"""
Line hashing for anchor change detection.

djb2 rolling hash over UTF-16 code units, rendered as 8 lowercase hex
characters. Documents written by the browser/editor side hash with
``charCodeAt``, so iterating UTF-16 code units keeps anchors written by
either side interchangeable. Not cryptographic: the hash is a tie-breaker
for locating a line, never an identity.
"""

_DJB2_SEED = 5381
_MASK32 = 0xFFFFFFFF


def _utf16_units(text: str):
    data = text.encode("utf-16-le", errors="surrogatepass")
    for i in range(0, len(data), 2):
        yield data[i] | (data[i + 1] << 8)


def hash_line(text: str) -> str:
    """Return the 8-hex-char djb2 hash of ``text`` (exact, no trimming)."""
    h = _DJB2_SEED
    for unit in _utf16_units(text):
        h = ((h << 5) + h + unit) & _MASK32
    return f"{h:08x}"


def body_hash(body: str) -> str:
    """Hash of a whole body, stored as the cursor's ``lastSeenHash``."""
    return hash_line(body)
