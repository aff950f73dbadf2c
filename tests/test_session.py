"""
Tests for the session: refresh, toggles, dispatch and the result log.
"""

import asyncio
from datetime import datetime

from conftest import FakeBackend, ident, make_prediction
from turnsync.errors import ActionFailure, BackendUnavailable, ScanError
from turnsync.session import ResultLog, SyncSession


def fixed_clock():
    return datetime(2024, 5, 1, 20, 15, 30)


def new_session(*predictions) -> tuple[SyncSession, FakeBackend]:
    backend = FakeBackend(*predictions)
    return SyncSession(backend, clock=fixed_clock), backend


class TestRefresh:

    def test_initial_refresh_selects_everything(self, basic_prediction):
        session, _ = new_session(basic_prediction)

        asyncio.run(session.refresh())

        assert session.prediction is basic_prediction
        assert len(session.store) == 3
        assert all(e.included for e in session.store)
        assert session.results.messages() == ["Checked: 20:15:30"]

    def test_exclusion_survives_identical_refresh(self, basic_prediction):
        session, _ = new_session(basic_prediction)

        asyncio.run(session.refresh())
        session.toggle("Axis DM 12")
        asyncio.run(session.refresh())

        assert not session.store.is_included(ident("Axis DM 12"))
        assert session.store.is_included(ident("Allies 13"))

    def test_toggle_while_predict_in_flight_survives_merge(self, basic_prediction):
        session, backend = new_session(basic_prediction)
        asyncio.run(session.refresh())
        backend.hold = True

        async def scenario():
            task = asyncio.create_task(session.refresh())
            while not backend.gates:
                await asyncio.sleep(0)
            session.toggle("Axis DM 12", False)
            backend.release()
            return await task

        prediction = asyncio.run(scenario())

        assert prediction is basic_prediction
        assert backend.predict_calls == 2
        assert not session.store.is_included(ident("Axis DM 12"))
        assert session.store.is_included(ident("Axis Bob 12"))

    def test_failed_predict_leaves_selection_untouched(self, basic_prediction):
        session, _ = new_session(basic_prediction, ScanError("Saves folder missing"))

        asyncio.run(session.refresh())
        session.toggle("Axis Bob 12", False)
        store_before = session.store.copy()
        view_before = session.view()
        log_before = len(session.results)

        result = asyncio.run(session.refresh())

        assert result is None
        assert session.prediction is basic_prediction
        assert session.store == store_before
        assert session.view() == view_before
        assert len(session.results) == log_before + 1
        assert session.results.last().kind == "error"
        assert session.results.last().message == "Saves folder missing"

    def test_autosave_flip_removes_entry(self, basic_prediction):
        not_ready = make_prediction(uploads=["Axis DM 12"], downloads=["Axis Bob 12"])
        session, _ = new_session(basic_prediction, not_ready)

        asyncio.run(session.refresh())
        asyncio.run(session.refresh())

        assert session.store.autosave is None
        assert ident("Allies 13") not in session.store

    def test_host_reopen_refreshes_in_background(self, basic_prediction):
        session, backend = new_session(basic_prediction)

        async def scenario():
            task = session.on_host_reopen()
            await task

        asyncio.run(scenario())

        assert backend.predict_calls == 1
        assert session.prediction is basic_prediction


class TestGo:

    def test_dispatches_full_selection(self, basic_prediction):
        session, backend = new_session(basic_prediction)
        asyncio.run(session.refresh())

        outcome = asyncio.run(session.go())

        assert outcome.sent
        assert outcome.request.upload_items == {"Allies 13", "Axis DM 12"}
        assert outcome.request.download_items == {"Axis Bob 12"}
        assert backend.upload_calls == [("Allies 13", {"Axis DM 12"})]
        assert backend.download_calls == [{"Axis Bob 12"}]

    def test_refresh_follows_completed_dispatch(self, basic_prediction):
        session, backend = new_session(basic_prediction)
        asyncio.run(session.refresh())
        backend.events.clear()

        asyncio.run(session.go())

        assert backend.events == [
            "upload", "download", "uploaded", "downloaded", "predict:2", "predicted:2",
        ]

    def test_results_are_logged_in_order(self, basic_prediction):
        session, _ = new_session(basic_prediction)
        asyncio.run(session.refresh())

        asyncio.run(session.go())

        assert session.results.messages() == [
            "Checked: 20:15:30",
            "Uploaded 2 save(s)",
            "Downloaded 1 save(s)",
            "Checked: 20:15:30",
        ]

    def test_failure_still_forces_refresh(self, basic_prediction):
        session, backend = new_session(basic_prediction)
        backend.download_error = ActionFailure("download", "remote is read-only")
        asyncio.run(session.refresh())

        outcome = asyncio.run(session.go())

        assert not outcome.ok
        assert backend.predict_calls == 2
        kinds = [(e.kind, e.message) for e in session.results]
        assert ("upload", "Uploaded 2 save(s)") in kinds
        assert ("error", "Download failed: remote is read-only") in kinds

    def test_nothing_selected_is_a_no_op(self, basic_prediction):
        session, backend = new_session(basic_prediction)
        asyncio.run(session.refresh())
        for entry in session.store:
            session.toggle(entry.identity, False)

        assert not session.can_dispatch
        outcome = asyncio.run(session.go())

        assert not outcome.sent
        assert backend.upload_calls == []
        assert backend.download_calls == []
        assert backend.predict_calls == 1

    def test_refresh_failure_after_dispatch_is_logged(self, basic_prediction):
        session, _ = new_session(basic_prediction, BackendUnavailable("backend went away"))
        asyncio.run(session.refresh())

        asyncio.run(session.go())

        assert session.results.last().message == "backend went away"
        assert len(session.store) == 3


class TestResultLog:

    def test_bounded(self):
        log = ResultLog(limit=2)
        for i in range(3):
            log.append("refresh", str(i))
        assert log.messages() == ["1", "2"]

    def test_last_when_empty(self):
        assert ResultLog().last() is None
