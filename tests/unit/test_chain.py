"""
Unit tests for the ledger substrate.

Tests cover:
1. Clock
2. Native balances and transfers
3. Atomic savepoints (nested, contract state, deployments)
4. Receipts
5. Event log and subscriptions
"""

import pytest

from gavel.core.chain import Chain, Contract, atomic
from gavel.core.errors import (
    InsufficientBalance,
    InvalidAddress,
    InvalidTime,
    ReasonCode,
    TransferRejected,
    UnknownContract,
    ZeroAmount,
)
from gavel.crypto import address_from_label, contract_address


START = 1_700_000_000


class Counter(Contract):
    """Minimal contract with one piece of state."""
    
    def __init__(self, chain, deployer):
        super().__init__(chain, deployer)
        self.value = 0
        self.history = []
    
    @atomic
    def bump(self, fail=False):
        self.value += 1
        self.history.append(self.value)
        self.emit("Bumped", value=self.value)
        if fail:
            raise ZeroAmount("forced failure")
        return self.value


class Rejecter(Contract):
    """Contract whose receive hook always fails."""
    
    def receive(self, sender, amount):
        raise RuntimeError("no thanks")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def chain():
    return Chain(start_time=START)


@pytest.fixture
def alice():
    return address_from_label("alice")


@pytest.fixture
def bob():
    return address_from_label("bob")


@pytest.fixture
def counter(chain, alice):
    return Counter(chain, alice)


# =============================================================================
# Clock Tests
# =============================================================================


class TestClock:
    """Tests for ledger time."""
    
    def test_start_time(self, chain):
        assert chain.now == START
    
    def test_advance(self, chain):
        assert chain.advance(60) == START + 60
        assert chain.now == START + 60
    
    def test_advance_negative_rejected(self, chain):
        with pytest.raises(InvalidTime):
            chain.advance(-1)
        assert chain.now == START
    
    def test_set_time_backwards_rejected(self, chain):
        chain.set_time(START + 100)
        with pytest.raises(InvalidTime):
            chain.set_time(START + 99)
        assert chain.now == START + 100


# =============================================================================
# Native Currency Tests
# =============================================================================


class TestNativeCurrency:
    """Tests for native balances."""
    
    def test_fund_and_transfer(self, chain, alice, bob):
        chain.fund(alice, 1000)
        chain.transfer_native(alice, bob, 400)
        
        assert chain.balance_of(alice) == 600
        assert chain.balance_of(bob) == 400
    
    def test_insufficient_balance(self, chain, alice, bob):
        chain.fund(alice, 100)
        with pytest.raises(InsufficientBalance):
            chain.transfer_native(alice, bob, 101)
        
        assert chain.balance_of(alice) == 100
        assert chain.balance_of(bob) == 0
    
    def test_invalid_recipient(self, chain, alice):
        chain.fund(alice, 100)
        with pytest.raises(InvalidAddress):
            chain.transfer_native(alice, "not-an-address", 1)
    
    def test_addresses_are_case_insensitive(self, chain, alice):
        chain.fund(alice.upper().replace("0X", "0x"), 5)
        assert chain.balance_of(alice) == 5
    
    def test_rejecting_receive_hook_aborts_transfer(self, chain, alice):
        rejecter = Rejecter(chain, alice)
        chain.fund(alice, 100)
        
        with pytest.raises(TransferRejected):
            chain.transfer_native(alice, rejecter.address, 10)
        
        assert chain.balance_of(alice) == 100
        assert chain.balance_of(rejecter.address) == 0


# =============================================================================
# Atomicity Tests
# =============================================================================


class TestAtomicity:
    """Tests for savepoints and rollback."""
    
    def test_failed_block_restores_balances(self, chain, alice, bob):
        chain.fund(alice, 100)
        with pytest.raises(ZeroAmount):
            with chain.atomic():
                chain.transfer_native(alice, bob, 50)
                raise ZeroAmount()
        
        assert chain.balance_of(alice) == 100
        assert chain.balance_of(bob) == 0
    
    def test_failed_method_restores_contract_state(self, chain, counter):
        counter.bump()
        with pytest.raises(ZeroAmount):
            counter.bump(fail=True)
        
        assert counter.value == 1
        assert counter.history == [1]
    
    def test_nested_failure_handled_by_outer(self, chain, counter):
        with chain.atomic():
            counter.bump()
            try:
                counter.bump(fail=True)
            except ZeroAmount:
                pass
            counter.bump()
        
        assert counter.value == 2
        assert counter.history == [1, 2]
    
    def test_outer_failure_discards_committed_inner_work(self, chain, counter):
        with pytest.raises(ZeroAmount):
            with chain.atomic():
                counter.bump()
                counter.bump()
                raise ZeroAmount()
        
        assert counter.value == 0
    
    def test_failed_block_removes_deployments(self, chain, alice):
        with pytest.raises(ZeroAmount):
            with chain.atomic():
                c = Counter(chain, alice)
                assert chain.is_contract(c.address)
                raise ZeroAmount()
        
        assert not chain.is_contract(c.address)
        # Nonce rolled back too: the next deployment reuses the address
        assert Counter(chain, alice).address == c.address
    
    def test_time_not_rolled_back(self, chain):
        with pytest.raises(ZeroAmount):
            with chain.atomic():
                chain.advance(10)
                raise ZeroAmount()
        assert chain.now == START + 10


# =============================================================================
# Contract Tests
# =============================================================================


class TestContracts:
    """Tests for deployment and lookup."""
    
    def test_deterministic_address(self, chain, alice):
        first = Counter(chain, alice)
        second = Counter(chain, alice)
        
        assert first.address == contract_address(alice, 0)
        assert second.address == contract_address(alice, 1)
    
    def test_get_contract(self, chain, counter):
        assert chain.get_contract(counter.address) is counter
        assert chain.get_contract(counter.address.upper().replace("0X", "0x")) is counter
    
    def test_unknown_contract(self, chain, bob):
        with pytest.raises(UnknownContract):
            chain.get_contract(bob)
    
    def test_invalid_deployer(self, chain):
        with pytest.raises(InvalidAddress):
            Counter(chain, "0x1234")
        assert chain.stats()["contract_count"] == 0


# =============================================================================
# Receipt Tests
# =============================================================================


class TestTransact:
    """Tests for receipts."""
    
    def test_success_receipt(self, chain, counter):
        receipt = chain.transact(counter.bump)
        
        assert receipt.success
        assert receipt.return_value == 1
        assert [e.name for e in receipt.events] == ["Bumped"]
        assert receipt.timestamp == START
    
    def test_failure_receipt(self, chain, counter):
        receipt = chain.transact(counter.bump, fail=True)
        
        assert not receipt.success
        assert receipt.code == ReasonCode.ZERO_AMOUNT
        assert receipt.error == "forced failure"
        assert receipt.events == []
        assert counter.value == 0
    
    def test_non_engine_errors_propagate(self, chain):
        def broken():
            raise KeyError("bug")
        
        with pytest.raises(KeyError):
            chain.transact(broken)


# =============================================================================
# Event Tests
# =============================================================================


class TestEvents:
    """Tests for the event log."""
    
    def test_event_fields(self, chain, counter):
        counter.bump()
        event = chain.get_events("Bumped")[0]
        
        assert event.address == counter.address
        assert event["value"] == 1
        assert event.timestamp == START
    
    def test_rolled_back_events_removed(self, chain, counter):
        counter.bump()
        chain.transact(counter.bump, fail=True)
        
        assert len(chain.get_events("Bumped")) == 1
    
    def test_subscriber_sees_committed_events_only(self, chain, counter):
        seen = []
        chain.subscribe(seen.append, name="Bumped")
        
        counter.bump()
        chain.transact(counter.bump, fail=True)
        
        assert [e["value"] for e in seen] == [1]
    
    def test_subscriber_notified_after_outermost_commit(self, chain, counter):
        seen = []
        chain.subscribe(seen.append)
        
        with chain.atomic():
            counter.bump()
            assert seen == []
        
        assert len(seen) == 1
    
    def test_failing_subscriber_does_not_affect_state(self, chain, counter):
        def explode(event):
            raise RuntimeError("observer bug")
        
        chain.subscribe(explode)
        assert counter.bump() == 1
        assert counter.value == 1
    
    def test_unsubscribe(self, chain, counter):
        seen = []
        subscription = chain.subscribe(seen.append, address=counter.address)
        counter.bump()
        chain.unsubscribe(subscription)
        counter.bump()
        
        assert len(seen) == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
