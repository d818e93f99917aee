"""
Fetch outcome and aggregate result models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

LINE_BREAK = "\n"


@dataclass(frozen=True)
class FetchSize:
    """
    Successful retrieval: number of body bytes read from `url`.
    """

    url: str
    size: int

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"size must be non-negative, got {self.size}")


@dataclass(frozen=True)
class FetchFailure:
    """
    Failed retrieval with a short reason and the underlying error text.
    """

    url: str
    reason: str
    detail: str = ""

    @property
    def message(self) -> str:
        if not self.detail:
            return self.reason
        return f"{self.reason}: {self.detail}"


FetchOutcome = Union[FetchSize, FetchFailure]


@dataclass(frozen=True)
class AggregateResult:
    """
    Sizes collected from every fetch of one request, in arrival order.
    """

    sizes: list[int] = field(default_factory=list)

    @property
    def payload(self) -> str:
        return LINE_BREAK.join(str(size) for size in self.sizes)

    def __len__(self) -> int:
        return len(self.sizes)
