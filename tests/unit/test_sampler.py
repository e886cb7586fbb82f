"""
Unit tests for the auto-track position sampler.
"""

import time

import pytest

from src.logbook.sampler import PositionSampler


@pytest.fixture
def sampler(collector, ledger):
    return PositionSampler(collector, ledger, interval_minutes=15)


class TestSampleOnce:
    def test_records_auto_track_entry(self, sampler, storage):
        result = sampler.sample_once()

        entry = storage.get_entry(result.entry_id)
        assert entry.is_auto_track
        assert entry.log_text is None
        assert entry.email_sent is False
        assert sampler.recorded_count == 1

    def test_skips_without_fix(self, sampler, reader, storage):
        reader.set_position(None, None)

        assert sampler.sample_once() is None
        assert sampler.skipped_count == 1
        assert storage.recent_entries() == []

    def test_skips_small_movement(self, sampler, reader, clock, storage):
        sampler.sample_once()
        clock.advance(900)
        # ~0.03 nm
        reader.set_position(0.0, 0.0005)

        assert sampler.sample_once() is None
        assert sampler.skipped_count == 1
        assert len(storage.recent_entries()) == 1

    def test_samples_carry_distance_records(self, sampler, reader, clock, ledger, storage):
        sampler.sample_once()
        clock.advance(900)
        reader.set_position(0.0, 0.25)
        result = sampler.sample_once()

        assert result.distance_since_last == pytest.approx(15.01, abs=0.01)
        assert ledger.total_distance() == pytest.approx(result.total_distance)
        assert storage.get_entry(result.entry_id).distance is not None

    def test_errors_are_counted(self, collector, ledger):
        def broken_snapshot():
            raise RuntimeError("reader offline")

        collector.snapshot = broken_snapshot
        sampler = PositionSampler(collector, ledger)

        assert sampler.sample_once() is None
        assert sampler.error_count == 1

    def test_on_record_callback(self, collector, ledger):
        seen = []
        sampler = PositionSampler(collector, ledger, on_record=seen.append)
        result = sampler.sample_once()
        assert seen == [result]


class TestLifecycle:
    def test_disabled_does_not_start(self, collector, ledger):
        sampler = PositionSampler(collector, ledger, enabled=False)
        sampler.start()
        assert not sampler.is_running

    def test_start_records_immediately(self, collector, ledger, storage):
        sampler = PositionSampler(collector, ledger, interval_minutes=60)
        sampler.start()
        try:
            for _ in range(200):
                if sampler.recorded_count:
                    break
                time.sleep(0.01)
            assert sampler.recorded_count == 1
        finally:
            sampler.stop()
        assert not sampler.is_running

    def test_statistics(self, sampler):
        sampler.sample_once()
        stats = sampler.statistics()
        assert stats["enabled"] is True
        assert stats["interval_minutes"] == 15
        assert stats["recorded"] == 1
        assert stats["is_running"] is False
