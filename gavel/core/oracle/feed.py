"""
Price Feeds - external sources reporting an asset's USD exchange rate.

A feed reports rounds: each round carries a signed fixed-point answer with
feed-specific decimals and the time it was last updated. The oracle only
reads `decimals` and `latest_round_data()`; anything exposing those can be
plugged in as a feed.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable

from gavel.core.chain import Ownable, atomic
from gavel.utils.logger import get_logger

logger = get_logger("oracle.feed")


@dataclass(frozen=True)
class RoundData:
    """
    One price report.
    
    Attributes:
        round_id: Monotonic round counter
        answer: Price (signed, scaled by the feed's decimals)
        started_at: Time the round started
        updated_at: Time the answer was written (0 = round incomplete)
        answered_in_round: Round in which the answer was computed
    """
    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


@runtime_checkable
class PriceFeed(Protocol):
    """Interface the oracle consumes."""
    
    decimals: int
    description: str
    
    def latest_round_data(self) -> RoundData: ...


class MockPriceFeed(Ownable):
    """
    Operator-controlled aggregator.
    
    Stands in for a live price network in tests, demos and local
    deployments. The owner pushes answers; every push opens a new round.
    """
    
    def __init__(
        self,
        chain,
        deployer: str,
        decimals: int = 8,
        initial_answer: int = 0,
        description: str = "",
        owner: Optional[str] = None,
    ):
        super().__init__(chain, deployer, owner)
        self.decimals = decimals
        self.description = description
        self.round_id = 0
        self.answer = 0
        self.started_at = 0
        self.updated_at = 0
        self.answered_in_round = 0
        if initial_answer:
            self._write(initial_answer, chain.now)
    
    def latest_round_data(self) -> RoundData:
        return RoundData(
            round_id=self.round_id,
            answer=self.answer,
            started_at=self.started_at,
            updated_at=self.updated_at,
            answered_in_round=self.answered_in_round,
        )
    
    @atomic
    def update_answer(self, sender: str, answer: int, updated_at: Optional[int] = None) -> int:
        """
        Publish a new answer (owner-only).
        
        Args:
            answer: Price scaled by `decimals`
            updated_at: Report time; defaults to the current ledger time
            
        Returns:
            The new round id
        """
        self._only_owner(sender)
        self._write(answer, self.chain.now if updated_at is None else updated_at)
        logger.debug(f"Feed {self.description or self.address} round {self.round_id}: {answer}")
        return self.round_id
    
    @atomic
    def update_round_data(
        self,
        sender: str,
        round_id: int,
        answer: int,
        started_at: int,
        updated_at: int,
        answered_in_round: int,
    ) -> None:
        """Write a raw round (owner-only); lets tests model incomplete or carried-over rounds."""
        self._only_owner(sender)
        self.round_id = round_id
        self.answer = answer
        self.started_at = started_at
        self.updated_at = updated_at
        self.answered_in_round = answered_in_round
    
    def _write(self, answer: int, updated_at: int) -> None:
        self.round_id += 1
        self.answer = answer
        self.started_at = updated_at
        self.updated_at = updated_at
        self.answered_in_round = self.round_id
        self.emit("AnswerUpdated", answer=answer, round_id=self.round_id, updated_at=updated_at)
