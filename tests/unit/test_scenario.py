"""
End-to-end voyage scenario through the service, storage and ledger.
"""

import pytest

from src.logbook.errors import InvalidVoyageOperation
from src.logbook.publisher import PATH_TOTAL, PATH_VOYAGE_NAME


class TestVoyageScenario:
    def test_two_reports_then_new_voyage(self, service, reader, clock, storage):
        voyage_id = service.ledger.ensure_active_voyage()

        reader.set_position(0.0, 0.0)
        first = service.run_manual_cycle()
        assert first.success
        assert first.distance.distance_since_last == 0.0
        assert first.distance.total_distance == 0.0

        clock.advance(24 * 3600)
        reader.set_position(0.0, 1.0)
        second = service.run_manual_cycle()
        assert second.distance.distance_since_last == pytest.approx(60.04, abs=0.01)
        assert second.distance.total_distance == pytest.approx(60.04, abs=0.01)
        assert service.ledger.total_distance() == pytest.approx(60.04, abs=0.01)

        with pytest.raises(InvalidVoyageOperation):
            service.ledger.delete_voyage(voyage_id)

        new_id = service.start_voyage("next")
        assert new_id != voyage_id
        assert service.ledger.total_distance() == 0.0

        reset = service.events.recent(1)[0]
        assert reset.kind == "voyage_reset"
        assert reset.value_of(PATH_TOTAL) == 0
        assert reset.value_of(PATH_VOYAGE_NAME) == "next"

        # The ended voyage keeps its history and can now be deleted
        old = storage.get_voyage(voyage_id)
        assert old.entry_count == 2
        assert old.total_distance == pytest.approx(60.04, abs=0.01)
        assert service.ledger.delete_voyage(voyage_id)["deleted_entries"] == 2


class TestServiceLifecycle:
    def test_send_now_uses_worker_pool(self, service, storage, mailer):
        result = service.send_now(timeout=10)

        assert result.success
        assert result.trigger == "manual"
        assert service.scheduler.manual_runs == 1
        assert service.clock.last_fired is None
        assert storage.get_entry(result.entry_id).email_sent is True

    def test_send_now_after_stop(self, service):
        service.stop()
        result = service.send_now()
        assert result.success is False
        assert result.error == "Service is stopping"

    def test_start_without_fix_wait(self, service, storage, clock):
        # Off schedule so no cycle fires on the first poll
        clock.advance(3600)
        service.start(wait_for_fix=False)

        assert service.startup_complete
        assert service.scheduler.is_running
        assert storage.active_voyage() is not None
        assert service.events.recent(1)[0].kind == "status"

    def test_degraded_without_fix(self, service, reader, clock):
        clock.advance(3600)
        reader.set_position(None, None)
        service.start(wait_for_fix=True)
        service._startup_thread.join(timeout=5)

        assert service.degraded is True
        assert service.startup_complete is True

    def test_stop_closes_mailer(self, service, mailer, clock):
        clock.advance(3600)
        service.start(wait_for_fix=False)
        service.stop()

        assert mailer.closed
        assert not service.scheduler.is_running

    def test_status(self, service):
        service.ledger.ensure_active_voyage()
        service.submit_log("status check")
        service.run_manual_cycle()

        status = service.status()

        assert status["reports_sent"] == 1
        assert status["pending_log"] is None
        assert status["voyage"]["name"] == "First Voyage"
        assert status["schedule"]["interval_hours"] == 24
        assert status["schedule"]["next_report"].startswith("2024-06-01T12:00:00")
        assert status["last_cycle"]["success"] is True
        assert status["position_tracking"]["enabled"] is False
        assert status["metrics"]["counters"]["report_cycles"] == 1
