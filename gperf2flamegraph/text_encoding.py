from __future__ import annotations

import logging

LOG = logging.getLogger(__name__)


def detect_encoding(raw: bytes) -> str | None:
    try:
        import chardet
    except ModuleNotFoundError as exc:
        raise ModuleNotFoundError(
            "The 'chardet' package is required to decode non UTF-8 memory maps. "
            "Install it with 'pip install chardet'.") from exc
    result = chardet.detect(raw)
    return result['encoding']


def decode_best_effort(raw: bytes) -> str:
    """Decode ``raw`` into text without ever failing.

    UTF-8 is tried first. Anything else goes through ``chardet`` and is decoded
    with replacement characters; an unknown or unusable guess falls back to
    UTF-8 with replacement.
    """
    if not raw:
        return ""
    try:
        return raw.decode('utf-8')
    except UnicodeDecodeError:
        pass

    encoding = detect_encoding(raw)
    if encoding:
        try:
            return raw.decode(encoding, errors='replace')  # Replace illegal chars
        except LookupError as exc:
            LOG.warning("Detected encoding '%s' is unusable: %s. Falling back to UTF-8.", encoding, exc)
    return raw.decode('utf-8', errors='replace')
