"""
Unit tests for logging setup.

Tests cover:
1. Subsystem loggers under the gavel namespace
2. Per-subsystem level overrides
3. Re-applying levels after the first setup
"""

import logging

import pytest

from gavel.utils.logger import GavelLogger, get_logger, setup_logging, to_level


@pytest.fixture(autouse=True)
def default_levels():
    """Restore engine defaults after each test."""
    yield
    setup_logging()


class TestLevels:
    """Tests for level resolution."""
    
    @pytest.mark.parametrize("value,expected", [
        ("debug", logging.DEBUG),
        ("WARNING", logging.WARNING),
        (logging.ERROR, logging.ERROR),
    ])
    def test_to_level(self, value, expected):
        assert to_level(value) == expected
    
    def test_unknown_level(self):
        with pytest.raises(ValueError):
            to_level("LOUD")


class TestSubsystemLevels:
    """Tests for per-subsystem overrides."""
    
    def test_subsystem_logger_name(self):
        assert get_logger("auction").name == "gavel.auction"
    
    def test_override_one_subsystem(self):
        setup_logging(level=logging.WARNING, levels={"auction": "DEBUG"})
        
        assert get_logger("auction").isEnabledFor(logging.DEBUG)
        assert not get_logger("bridge").isEnabledFor(logging.INFO)
        assert get_logger("bridge").isEnabledFor(logging.WARNING)
    
    def test_handlers_pass_most_verbose_level(self):
        setup_logging(level=logging.WARNING, levels={"auction": "DEBUG"})
        
        handlers = logging.getLogger("gavel").handlers
        assert handlers
        assert all(h.level == logging.DEBUG for h in handlers)
    
    def test_handlers_follow_root_without_overrides(self):
        setup_logging(level=logging.ERROR)
        
        assert all(h.level == logging.ERROR for h in logging.getLogger("gavel").handlers)
    
    def test_dropped_override_is_cleared(self):
        setup_logging(level=logging.INFO, levels={"oracle": "ERROR"})
        assert not get_logger("oracle").isEnabledFor(logging.WARNING)
        
        setup_logging(level=logging.INFO)
        assert get_logger("oracle").level == logging.NOTSET
        assert get_logger("oracle").isEnabledFor(logging.INFO)
    
    def test_setup_keeps_handlers(self):
        before = list(logging.getLogger("gavel").handlers)
        
        setup_logging(level=logging.DEBUG, levels={"chain": "INFO"})
        assert logging.getLogger("gavel").handlers == before
        assert GavelLogger._initialized
    
    def test_invalid_override(self):
        with pytest.raises(ValueError):
            setup_logging(levels={"auction": "LOUD"})


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
