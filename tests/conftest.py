"""Global test configuration and fixtures."""

from datetime import timedelta

import pytest

from kusto_ingestor.ingestion.cache import DedupeCache
from kusto_ingestor.ingestion.poller import IngestionPoller
from kusto_ingestor.ingestion.rollover import RolloverPolicy
from kusto_ingestor.test_utils.fakes import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> DedupeCache:
    return DedupeCache(clock=clock.monotonic)


@pytest.fixture
def make_poller(cache: DedupeCache, clock: FakeClock):
    """Factory for pollers wired to the fake clock and the shared cache."""

    def _make(ingestion_sets, **kwargs) -> IngestionPoller:
        options = {
            "rollover_policy": RolloverPolicy(timedelta(seconds=61)),
            "cache_ttl": timedelta(seconds=180),
            "poll_interval": 0.01,
            "call_timeout": None,
            "clock": clock.now,
        }
        options.update(kwargs)
        return IngestionPoller(ingestion_sets=ingestion_sets, cache=cache, **options)

    return _make
