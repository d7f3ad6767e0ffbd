import bisect
from collections.abc import Iterable, Mapping

from loguru import logger
from pydantic import BaseModel, Field

from clinic.domain.models import NumberCategory


class PoolState(BaseModel):
    """Serializable snapshot of an :class:`IdentifierPool`."""

    highest_minted: dict[NumberCategory, int] = Field(default_factory=dict)
    reusable: dict[NumberCategory, list[int]] = Field(default_factory=dict)


class IdentifierPool:
    """Per-category sequence counter plus a sorted list of released sequences.

    ``allocate`` always hands out the smallest released sequence before
    minting a new one. Nothing here raises: callers pass categories and
    positive integers only.
    """

    def __init__(self) -> None:
        self._highest: dict[NumberCategory, int] = {}
        self._reusable: dict[NumberCategory, list[int]] = {}
        self.reset()

    @classmethod
    def from_state(cls, state: PoolState) -> "IdentifierPool":
        pool = cls()
        pool.restore(state)
        return pool

    def restore(self, state: PoolState) -> None:
        """Replace counters and reusable lists with those in ``state``."""
        self.reset()
        for category, highest in state.highest_minted.items():
            self._highest[category] = highest
        for category, sequences in state.reusable.items():
            self._reusable[category] = sorted(set(sequences))

    def state(self) -> PoolState:
        return PoolState(
            highest_minted=dict(self._highest),
            reusable={category: list(seqs) for category, seqs in self._reusable.items()},
        )

    def reset(self) -> None:
        self._highest = {category: 0 for category in NumberCategory}
        self._reusable = {category: [] for category in NumberCategory}

    def highest_minted(self, category: NumberCategory) -> int:
        return self._highest[category]

    def available(self, category: NumberCategory) -> list[int]:
        return list(self._reusable[category])

    def allocate(self, category: NumberCategory) -> int:
        reusable = self._reusable[category]
        if reusable:
            sequence = reusable.pop(0)
            logger.debug("Reusing {} sequence {}", category.value, sequence)
            return sequence

        self._highest[category] += 1
        sequence = self._highest[category]
        logger.debug("Minted {} sequence {}", category.value, sequence)
        return sequence

    def release(self, category: NumberCategory, sequence: int) -> None:
        reusable = self._reusable[category]
        index = bisect.bisect_left(reusable, sequence)
        if index < len(reusable) and reusable[index] == sequence:
            return
        reusable.insert(index, sequence)
        # A sequence handed out by a previous pool instance may sit above
        # the local counter; minting must never reach it again.
        if sequence > self._highest[category]:
            self._highest[category] = sequence
        logger.debug("Released {} sequence {}", category.value, sequence)

    def bootstrap(self, existing: Mapping[NumberCategory, Iterable[int]]) -> None:
        """Rebuild counters and gaps from the numbers patients currently hold.

        Held sequences are dropped from the reusable list; every missing
        sequence below the highest held one becomes reusable.
        """
        for category in NumberCategory:
            held = set(existing.get(category, ()))
            highest = max(held, default=0)
            gaps = {seq for seq in range(1, highest) if seq not in held}
            kept = {seq for seq in self._reusable[category] if seq not in held}

            self._highest[category] = max(self._highest[category], highest)
            self._reusable[category] = sorted(gaps | kept)
            logger.info(
                "Bootstrapped {} pool: highest={}, reusable={}",
                category.value,
                self._highest[category],
                len(self._reusable[category]),
            )
