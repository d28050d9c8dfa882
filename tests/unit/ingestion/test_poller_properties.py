import asyncio
from datetime import timedelta

from hypothesis import HealthCheck, given, settings

from kusto_ingestor.ingestion.cache import DedupeCache
from kusto_ingestor.ingestion.models import FileOutcome
from kusto_ingestor.ingestion.poller import IngestionPoller
from kusto_ingestor.ingestion.rollover import RolloverPolicy
from kusto_ingestor.test_utils.fakes import FakeClock, file_entry, make_set
from kusto_ingestor.test_utils.hypothesis.strategies import (
    listing_strategy,
    max_files_strategy,
    rollover_delay_strategy,
)


def _run_cycle(listing, delay_seconds, max_files):
    clock = FakeClock()
    cache = DedupeCache(clock=clock.monotonic)
    entries = [file_entry(name, clock.ago(age)) for name, age, _ in listing]
    ingestion_set = make_set(entries=entries)
    for name, _, cached in listing:
        if cached:
            cache.insert((ingestion_set.key, name), timedelta(minutes=3))

    poller = IngestionPoller(
        ingestion_sets=[ingestion_set],
        cache=cache,
        rollover_policy=RolloverPolicy(timedelta(seconds=delay_seconds)),
        cache_ttl=timedelta(minutes=3),
        max_files_per_run=max_files,
        call_timeout=None,
        clock=clock.now,
    )
    report = asyncio.run(poller.process_set(ingestion_set))
    return ingestion_set, cache, report


@given(
    listing=listing_strategy,
    delay_seconds=rollover_delay_strategy,
    max_files=max_files_strategy,
)
@settings(max_examples=75, suppress_health_check=[HealthCheck.too_slow])
def test_only_rolled_over_uncached_files_are_selected(
    listing, delay_seconds, max_files
):
    ingestion_set, cache, report = _run_cycle(listing, delay_seconds, max_files)

    selected = set(ingestion_set.object_store.deleted)
    for name, age, cached in listing:
        if cached:
            assert name not in selected
        elif age < delay_seconds:
            assert name not in selected
            assert not cache.contains((ingestion_set.key, name))

    eligible = [
        name for name, age, cached in listing if not cached and age >= delay_seconds
    ]
    assert report.processed == min(len(eligible), max_files)
    assert ingestion_set.object_store.deleted == eligible[:max_files]
    assert report.count(FileOutcome.INGEST_FAILED) == 0
