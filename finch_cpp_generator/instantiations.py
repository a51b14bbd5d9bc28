"""
Registry of generic ABI record instantiations discovered during marshalling.

The raw ABI header only declares the `FinchOption<T>` / `FinchResult<T>`
templates; every instantiation the wrapper code touches has to be spelled out
explicitly before the header's `extern "C"` block. The mapper registers them as
it goes, and the module emitter flushes the registry once at the end of a run.
"""

from __future__ import annotations

import re
import threading
from typing import Iterable, Iterator, List, Set


class InstantiationRegistry:
    """
    Deduplicated, thread-safe set of instantiation spellings, e.g.
    "finch::bindgen::pkg::FinchOption<int32_t>".
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Set[str] = set()

    def register(self, instantiation: str) -> bool:
        """
        Record an instantiation. Returns True the first time it is seen.
        """
        with self._lock:
            if instantiation in self._items:
                return False
            self._items.add(instantiation)
            return True

    def snapshot(self) -> List[str]:
        with self._lock:
            return sorted(self._items)

    def flush(self) -> List[str]:
        """
        Drain the registry and return explicit instantiation declarations.
        """
        with self._lock:
            items = sorted(self._items)
            self._items.clear()
        return [declaration_for(i) for i in items]

    def __contains__(self, instantiation: object) -> bool:
        with self._lock:
            return instantiation in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())


def declaration_for(instantiation: str) -> str:
    """
    Explicit instantiation of `instantiation`, e.g.
    "template struct finch::bindgen::pkg::FinchOption<int32_t>;".

    This is an instantiation definition placed in a header that every
    translation unit includes. GCC and Clang accept the repeats across
    translation units, but ISO C++ allows only one such definition per program
    (no diagnostic required), so other toolchains may reject the link.
    """
    return f"template struct {instantiation};"


_WHITESPACE = re.compile(r"\s+")


def _squash(text: str) -> str:
    return _WHITESPACE.sub("", text)


def missing_declarations(declarations: Iterable[str], header_text: str) -> List[str]:
    """
    Declarations from `declarations` that `header_text` does not contain yet.
    Whitespace is ignored, so lines re-wrapped by a formatter still count.
    """
    present = _squash(header_text)
    return [d for d in declarations if _squash(d) not in present]


__all__ = ["InstantiationRegistry", "declaration_for", "missing_declarations"]
