"""
SimHash content fingerprints.

A fingerprint is a 64-bit value where every bit is the sign of a
frequency-weighted vote over the hashed tokens of a text. Similar texts end
up a small Hamming distance apart, so fingerprints can be compared in O(1)
and bucketed for near-linear candidate discovery (see lsh.py).

Pipeline:
1. tokenize: lowercase, punctuation -> whitespace, length/stop-word/digit filter
2. term frequency per distinct token
3. fnv1a64 per token (two 32-bit halves)
4. +tf / -tf per bit into 64 accumulators
5. bit = 1 iff accumulator > 0

Fingerprints are persisted as 16 hex chars by callers, so the token hash and
the tie-break (accumulator == 0 -> bit 0) must stay bit-for-bit stable.
"""

import re
from typing import Dict, Iterable, Iterator, List, Tuple

import numpy as np

from ..core.models import Fingerprint

STOP_WORDS = frozenset([
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
    "has", "he", "in", "is", "it", "its", "of", "on", "or", "that",
    "the", "to", "was", "were", "will", "with", "you", "your", "this",
    "they", "we", "our", "have", "been", "not", "but", "what", "all",
    "can", "had", "her", "there", "which", "their", "if", "each",
    "about", "how", "up", "out", "them", "then", "she", "many", "some",
    "so", "these", "would", "other", "into", "who", "no", "more",
])

MIN_TOKEN_LEN = 2
MAX_TOKEN_LEN = 30

_PUNCT = re.compile(r"[^\w\s]", re.ASCII)
_DIGITS = re.compile(r"^\d+$", re.ASCII)

_FNV_OFFSET_HIGH = 0xCBF29CE4
_FNV_OFFSET_LOW = 0x62B82175
_FNV_PRIME_HIGH = 0x0100
_FNV_PRIME_LOW = 0x01B3
_MASK32 = 0xFFFFFFFF

_BIT_SHIFTS = np.arange(64, dtype=np.uint64)


def tokenize(text: str) -> List[str]:
    words = _PUNCT.sub(" ", (text or "").lower()).split()
    return [
        w for w in words
        if MIN_TOKEN_LEN <= len(w) <= MAX_TOKEN_LEN
        and w not in STOP_WORDS
        and not _DIGITS.match(w)
    ]


def term_frequencies(tokens: Iterable[str]) -> Dict[str, int]:
    tf: Dict[str, int] = {}
    for token in tokens:
        tf[token] = tf.get(token, 0) + 1
    return tf


def fnv1a64(token: str) -> Tuple[int, int]:
    """FNV-1a variant computed in 32-bit halves.

    The low word is XORed and multiplied as a *signed* 32-bit integer before
    its carry is folded into the high word. Existing hex fingerprints depend
    on exactly this carry, so do not replace it with a true 64-bit FNV.
    """
    high = _FNV_OFFSET_HIGH
    low = _FNV_OFFSET_LOW
    for ch in token:
        low = (low ^ ord(ch)) & _MASK32
        signed = low - 0x100000000 if low & 0x80000000 else low
        temp = signed * _FNV_PRIME_LOW
        low = temp & _MASK32
        # floor division semantics of >> match the carry for negative temp
        high = (high * _FNV_PRIME_LOW + high * _FNV_PRIME_HIGH + (temp >> 32)) & _MASK32
    return high, low


def fingerprint(text: str) -> Fingerprint:
    tf = term_frequencies(tokenize(text))
    if not tf:
        return Fingerprint()

    hashes = np.array(
        [(h << 32) | l for h, l in (fnv1a64(token) for token in tf)],
        dtype=np.uint64,
    )
    weights = np.array(list(tf.values()), dtype=np.int64)

    # bits[t, i] is bit i of token t's hash
    bits = ((hashes[:, None] >> _BIT_SHIFTS[None, :]) & np.uint64(1)).astype(bool)
    votes = np.where(bits, weights[:, None], -weights[:, None])
    accumulator = votes.sum(axis=0)

    value = 0
    for i in np.flatnonzero(accumulator > 0):
        value |= 1 << int(i)
    return Fingerprint.from_int(value)


generate_simhash = fingerprint


def iter_fingerprints(texts: Iterable[str], batch_size: int = 500) -> Iterator[List[Fingerprint]]:
    """Fingerprint ``texts`` in batches so a caller can yield between them."""
    batch: List[Fingerprint] = []
    for text in texts:
        batch.append(fingerprint(text))
        if len(batch) >= batch_size:
            yield batch
            batch = []
    if batch:
        yield batch


def simhash_to_hex(fp: Fingerprint) -> str:
    return fp.to_hex()


def hex_to_simhash(text: str) -> Fingerprint:
    return Fingerprint.from_hex(text)
