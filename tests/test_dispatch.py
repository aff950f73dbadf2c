"""
Tests for building and dispatching action requests.
"""

import asyncio

from conftest import FakeBackend, make_prediction
from turnsync.dispatch import ActionRequest, build_action_request, dispatch
from turnsync.errors import ActionFailure, BackendUnavailable
from turnsync.selection import SelectionStore


class TestBuildActionRequest:

    def test_everything_included(self, basic_prediction):
        request = build_action_request(SelectionStore.from_prediction(basic_prediction))

        assert request.upload_items == {"Allies 13", "Axis DM 12"}
        assert request.download_items == {"Axis Bob 12"}
        assert request.autosave == "Allies 13"
        assert request.upload_saves == {"Axis DM 12"}

    def test_autosave_never_in_downloads(self, basic_prediction):
        request = build_action_request(SelectionStore.from_prediction(basic_prediction))
        assert "Allies 13" not in request.download_items

    def test_excluded_items_are_left_out(self, basic_prediction):
        store = SelectionStore.from_prediction(basic_prediction)
        store.toggle("Axis DM 12")
        store.toggle("Allies 13")

        request = build_action_request(store)

        assert request.upload_items == frozenset()
        assert request.autosave is None
        assert request.download_items == {"Axis Bob 12"}
        assert not request.is_empty

    def test_all_excluded_is_empty(self, basic_prediction):
        store = SelectionStore.from_prediction(basic_prediction)
        for entry in store:
            store.toggle(entry.identity, False)

        request = build_action_request(store)

        assert request.upload_items == frozenset()
        assert request.download_items == frozenset()
        assert request.is_empty

    def test_autosave_alone_is_not_empty(self):
        store = SelectionStore.from_prediction(make_prediction(autosave="Axis 3"))
        request = build_action_request(store)

        assert request.upload_items == {"Axis 3"}
        assert request.upload_saves == frozenset()
        assert not request.is_empty

    def test_empty_store(self):
        assert build_action_request(SelectionStore()).is_empty


class TestDispatch:

    def test_empty_request_is_not_sent(self):
        backend = FakeBackend(make_prediction())

        outcome = asyncio.run(dispatch(backend, ActionRequest()))

        assert outcome.sent is False
        assert outcome.results == []
        assert backend.upload_calls == []
        assert backend.download_calls == []

    def test_upload_and_download(self, basic_prediction):
        backend = FakeBackend(basic_prediction)
        request = build_action_request(SelectionStore.from_prediction(basic_prediction))

        outcome = asyncio.run(dispatch(backend, request))

        assert outcome.sent
        assert outcome.ok
        assert backend.upload_calls == [("Allies 13", {"Axis DM 12"})]
        assert backend.download_calls == [{"Axis Bob 12"}]
        assert [r.action for r in outcome.results] == ["upload", "download"]
        assert outcome.results[0].message == "Uploaded 2 save(s)"

    def test_halves_run_concurrently(self, basic_prediction):
        backend = FakeBackend(basic_prediction)
        request = build_action_request(SelectionStore.from_prediction(basic_prediction))

        asyncio.run(dispatch(backend, request))

        assert backend.events[:2] == ["upload", "download"]

    def test_skips_empty_half(self):
        backend = FakeBackend(make_prediction())
        request = ActionRequest(download_items=frozenset({"Axis Bob 1"}))

        outcome = asyncio.run(dispatch(backend, request))

        assert backend.upload_calls == []
        assert backend.download_calls == [{"Axis Bob 1"}]
        assert [r.action for r in outcome.results] == ["download"]

    def test_upload_failure_keeps_download_result(self, basic_prediction):
        backend = FakeBackend(basic_prediction)
        backend.upload_error = ActionFailure("upload", "disk full")
        request = build_action_request(SelectionStore.from_prediction(basic_prediction))

        outcome = asyncio.run(dispatch(backend, request))

        assert not outcome.ok
        assert outcome.errors == ["Upload failed: disk full"]
        download = outcome.results[1]
        assert download.ok
        assert download.message == "Downloaded 1 save(s)"

    def test_unavailable_backend_is_reported(self, basic_prediction):
        backend = FakeBackend(basic_prediction)
        backend.download_error = BackendUnavailable("connection refused")
        request = build_action_request(SelectionStore.from_prediction(basic_prediction))

        outcome = asyncio.run(dispatch(backend, request))

        assert outcome.errors == ["connection refused"]
        assert outcome.results[0].ok
