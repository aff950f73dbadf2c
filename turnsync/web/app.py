"""Flask application - JSON routes over a SyncSession."""

import asyncio
import atexit
import logging
from dataclasses import asdict

from flask import Flask, jsonify, request

from ..backend import Backend, BackendClient
from ..config import Settings
from ..save import MalformedIdentity
from ..selection import UnknownItem
from ..session import SyncSession
from .tasks import LoopThread

logger = logging.getLogger(__name__)


def _log_task_failure(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error("Background refresh failed: %s", error, exc_info=error)


def create_app(settings: Settings | None = None, backend: Backend | None = None) -> Flask:
    settings = settings or Settings()
    app = Flask(__name__)
    app.config["SETTINGS"] = settings

    if backend is None:
        backend = BackendClient(
            base_url=settings.backend_url,
            api_key=settings.api_key,
            timeout=settings.timeout,
        )

    loop = LoopThread().start()
    atexit.register(loop.stop)
    session: SyncSession = loop.call(SyncSession, backend, settings.result_log_limit)

    app.config["LOOP"] = loop
    app.config["SESSION"] = session

    def current_view() -> dict:
        data = loop.call(session.view).to_dict()
        data["refreshing"] = session.refreshing
        return data

    @app.route("/api/selection")
    def api_selection():
        return jsonify(current_view())

    @app.route("/api/refresh", methods=["POST"])
    def api_refresh():
        prediction = loop.run(session.refresh("web"))
        if prediction is None:
            last = loop.call(session.results.last)
            return jsonify({"error": last.message if last else "refresh failed",
                            "selection": current_view()}), 502
        return jsonify({"selection": current_view()})

    def reopen() -> None:
        session.on_host_reopen().add_done_callback(_log_task_failure)

    @app.route("/api/host/reopen", methods=["POST"])
    def api_host_reopen():
        loop.submit(reopen)
        return jsonify({"status": "refreshing"}), 202

    @app.route("/api/selection/<path:token>", methods=["POST"])
    def api_toggle(token: str):
        data = request.get_json(silent=True) or {}
        included = data.get("included")
        if included is not None and not isinstance(included, bool):
            return jsonify({"error": "included must be true or false"}), 400

        try:
            entry = loop.call(session.toggle, token, included)
        except MalformedIdentity as e:
            return jsonify({"error": str(e)}), 400
        except UnknownItem:
            return jsonify({"error": f"Not in selection: {token}"}), 404

        return jsonify({
            "token": entry.token,
            "label": entry.identity.label,
            "pool": entry.pool.value,
            "included": entry.included,
        })

    @app.route("/api/go", methods=["POST"])
    def api_go():
        outcome = loop.run(session.go())
        if not outcome.sent:
            return jsonify({"error": "Nothing selected", "selection": current_view()}), 400

        return jsonify({
            "request": {
                "upload_items": sorted(outcome.request.upload_items),
                "download_items": sorted(outcome.request.download_items),
                "autosave": outcome.request.autosave,
            },
            "results": [asdict(r) for r in outcome.results],
            "ok": outcome.ok,
            "selection": current_view(),
        })

    @app.route("/api/results")
    def api_results():
        entries = loop.call(lambda: [e.to_dict() for e in session.results])
        return jsonify({"results": entries})

    return app
