"""
Candidate address generation for subnet scanning
"""

import logging
from itertools import islice
from typing import Iterable, Iterator, List, Optional, Sequence, TypeVar

from .models import CandidateAddress

logger = logging.getLogger(__name__)

T = TypeVar("T")

HOST_SUFFIXES = range(1, 255)

DEFAULT_FALLBACK_PREFIXES = [
    "192.168.1",
    "192.168.0",
    "10.0.0",
    "10.0.1",
    "192.168.2",
    "192.168.86",
    "172.16.0",
]


def _valid_octets(text: str, count: int) -> bool:
    parts = text.split('.')
    if len(parts) != count:
        return False
    for part in parts:
        if not (part.isascii() and part.isdigit()) or not 1 <= len(part) <= 3:
            return False
        if not 0 <= int(part) <= 255:
            return False
    return True


def is_valid_ip(text: Optional[str]) -> bool:
    """True iff text is a dotted quad with every segment an integer in [0, 255]"""
    if not isinstance(text, str):
        return False
    return _valid_octets(text.strip(), 4)


def is_valid_prefix(text: Optional[str]) -> bool:
    """True iff text is a /24 prefix such as '192.168.1'"""
    if not isinstance(text, str):
        return False
    return _valid_octets(text.strip(), 3)


def prefix_of(address: str) -> str:
    return address.rsplit('.', 1)[0]


class AddressSpace:
    """
    Lazy, restartable sequence of candidate addresses.

    Prefixes are visited in the order given (duplicates and malformed
    prefixes dropped), host suffixes 1-254 ascending within each prefix.
    Every call to iter() starts over from the first prefix.
    """

    def __init__(self, prefixes: Iterable[str]):
        self.prefixes: List[str] = []
        for prefix in prefixes:
            prefix = prefix.strip().rstrip('.')
            if not is_valid_prefix(prefix):
                logger.warning(f"Ignoring invalid subnet prefix: {prefix}")
                continue
            if prefix not in self.prefixes:
                self.prefixes.append(prefix)

    @classmethod
    def with_detected(cls, detected: Optional[str], fallback: Sequence[str]) -> "AddressSpace":
        """Detected prefix (if any) first, then the fallback list"""
        ordered = [detected] if detected else []
        ordered.extend(fallback)
        return cls(ordered)

    def __iter__(self) -> Iterator[CandidateAddress]:
        for prefix in self.prefixes:
            for suffix in HOST_SUFFIXES:
                yield CandidateAddress(host=f"{prefix}.{suffix}", prefix=prefix)

    def __len__(self) -> int:
        return len(self.prefixes) * len(HOST_SUFFIXES)


def batched(iterable: Iterable[T], size: int) -> Iterator[List[T]]:
    """Yield lists of up to `size` items, pulling lazily from iterable"""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    iterator = iter(iterable)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch
