from dataclasses import asdict

from flask import Flask, jsonify, request

from logpulse.analytics import range_to_selection
from logpulse.config import Config
from logpulse.filters import apply_time_range, filter_entries
from logpulse.formatter import entry_summary
from logpulse.ingest import IngestionError
from logpulse.merger import EmptyDatasetError
from logpulse.metrics import downsample
from logpulse.models import LogFilter, TimeRange, entry_to_dict
from logpulse.pagination import paginate
from logpulse.session import LogSession, NoDatasetError
from logpulse.stats import compute_stats, stats_to_dict


class QueryError(ValueError):
    """Malformed query parameters."""


def _time_range_from(start, end):
    try:
        return TimeRange(start=int(start), end=int(end))
    except (TypeError, ValueError):
        raise QueryError("start and end must both be given as epoch milliseconds")


def _time_range_arg():
    """TimeRange from ?start=&end= (epoch ms), or None when both are absent."""
    start = request.args.get("start")
    end = request.args.get("end")
    if start is None and end is None:
        return None
    return _time_range_from(start, end)


def _int_arg(name, default=None):
    value = request.args.get(name)
    if value is None:
        if default is None:
            raise QueryError(f"missing query parameter: {name}")
        return default
    try:
        return int(value)
    except ValueError:
        raise QueryError(f"{name} must be an integer")


def _int_field(data, name):
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise QueryError(f"{name} must be an integer")
    return value


def _range_to_dict(time_range):
    return asdict(time_range) if time_range is not None else None


def _page_to_dict(page, row):
    return {
        "items": [row(e) for e in page.items],
        "page": page.page,
        "page_size": page.page_size,
        "total_items": page.total_items,
        "total_pages": page.total_pages,
        "first_item": page.first_item,
        "last_item": page.last_item,
    }


def create_app(config=None, session=None):
    """Flask application factory."""
    app = Flask(__name__)

    if config is None:
        config = Config.from_env()
    if session is None:
        session = LogSession.from_config(config)

    page_size = config["pagination"]["page_size"]
    max_points = config["metrics"]["max_points"]

    # Store components on app for access in tests
    app.config["components"] = {
        "config": config,
        "session": session,
    }

    def _dataset():
        dataset = session.dataset
        if dataset is None:
            raise NoDatasetError("No dataset loaded")
        return dataset

    def _row(entry):
        row = entry_summary(entry)
        row["index"] = session.index_of(entry)
        return row

    def _view():
        """The session's dashboard state: filter, zoom, current page, brush and selection."""
        result = _page_to_dict(session.current_page(), _row)
        result.update({
            "dataset": session.dataset.name,
            "filter": asdict(session.log_filter),
            "time_range": _range_to_dict(session.time_range),
            "selection": session.brush_selection(),
            "selected": _row(session.selected) if session.selected is not None else None,
        })
        result.update(session.filter_choices())
        return result

    @app.errorhandler(NoDatasetError)
    def no_dataset(exc):
        return jsonify({"status": "error", "message": str(exc)}), 404

    @app.errorhandler(QueryError)
    def bad_request(exc):
        return jsonify({"status": "error", "message": str(exc)}), 400

    # --- Routes ---

    @app.route("/health")
    def health():
        dataset = session.dataset
        return jsonify({
            "status": "healthy",
            "dataset": dataset.name if dataset else None,
            "entries": len(dataset) if dataset else 0,
        })

    @app.route("/api/ingest", methods=["POST"])
    def ingest_files():
        uploads = request.files.getlist("files")
        if not uploads:
            return jsonify({"status": "error", "message": "No files attached"}), 400

        sources = [
            (upload.filename or f"upload-{i + 1}", upload.read())
            for i, upload in enumerate(uploads)
        ]
        try:
            dataset = session.load(sources)
        except EmptyDatasetError as exc:
            return jsonify({"status": "error", "message": str(exc)}), 422
        except IngestionError as exc:
            return jsonify({"status": "error", "message": str(exc)}), 500

        return jsonify({
            "status": "loaded",
            "name": dataset.name,
            "entries": len(dataset),
            "sources": dataset.source_count,
        }), 201

    @app.route("/api/reset", methods=["POST"])
    def reset():
        session.reset()
        return jsonify({"status": "reset"})

    @app.route("/api/view")
    def view():
        return jsonify(_view())

    @app.route("/api/view", methods=["POST"])
    def update_view():
        """Change the session view. Filter keys replace the filter, start/end the zoom, page the page."""
        data = request.get_json(force=True, silent=True) or {}
        _dataset()

        if any(key in data for key in ("search", "level", "component")):
            session.set_filter(LogFilter(
                search=data.get("search") or "",
                level=data.get("level") or "",
                component=data.get("component") or "",
            ))
        if "start" in data or "end" in data:
            if data.get("start") is None and data.get("end") is None:
                session.set_time_range(None)
            else:
                session.set_time_range(_time_range_from(data.get("start"), data.get("end")))
        if "page" in data:
            session.go_to_page(_int_field(data, "page"))

        return jsonify(_view())

    @app.route("/api/logs")
    def logs():
        """Ad-hoc query that leaves the session view untouched."""
        dataset = _dataset()
        log_filter = LogFilter(
            search=request.args.get("search", ""),
            level=request.args.get("level", ""),
            component=request.args.get("component", ""),
        )
        page_number = _int_arg("page", default=1)
        if page_number < 1:
            raise QueryError("page must be at least 1")

        matches = filter_entries(dataset.entries, log_filter, _time_range_arg())
        result = _page_to_dict(paginate(matches, page_number, page_size), _row)
        choices = session.filter_choices()
        result.update({
            "dataset": dataset.name,
            "unique_levels": choices["levels"],
            "unique_components": choices["components"],
        })
        return jsonify(result)

    @app.route("/api/logs/<int:index>")
    def log_detail(index):
        dataset = _dataset()
        if index >= len(dataset):
            return jsonify({"status": "error", "message": f"No entry at index {index}"}), 404
        entry = dataset.entries[index]
        return jsonify({"index": index, "source": entry.source, "entry": entry_to_dict(entry)})

    @app.route("/api/logs/<int:index>/select", methods=["POST"])
    def select_log(index):
        try:
            entry = session.select_entry(index)
        except ValueError as exc:
            return jsonify({"status": "error", "message": str(exc)}), 404
        return jsonify({"status": "selected", "selected": _row(entry)})

    @app.route("/api/timeline")
    def timeline():
        buckets = session.timeline()
        time_range = _time_range_arg()
        if time_range is None:
            selection = session.brush_selection()
        else:
            selection = range_to_selection(buckets, time_range)
        return jsonify({
            "bucket_width": buckets[0].bucket_end - buckets[0].bucket_start if buckets else None,
            "buckets": [asdict(b) for b in buckets],
            "selection": selection,
        })

    @app.route("/api/timeline/select", methods=["POST"])
    def timeline_select():
        """Zoom the session to a brush selection over bucket indices."""
        data = request.get_json(force=True, silent=True) or {}
        start_index = _int_field(data, "start_index")
        end_index = _int_field(data, "end_index")
        try:
            time_range = session.select_buckets(start_index, end_index)
        except ValueError as exc:
            raise QueryError(str(exc))
        return jsonify({"time_range": asdict(time_range), "selection": session.brush_selection()})

    @app.route("/api/timeline/<int:index>/activate", methods=["POST"])
    def timeline_activate(index):
        try:
            activation = session.activate_bucket(index)
        except ValueError as exc:
            return jsonify({"status": "error", "message": str(exc)}), 404
        if activation is None:
            return jsonify({"status": "noop"})
        selected = activation.selected
        return jsonify({
            "status": "activated",
            "time_range": _range_to_dict(activation.time_range),
            "filter": asdict(activation.log_filter),
            "selected": _row(selected) if selected is not None else None,
        })

    @app.route("/api/metrics")
    def metrics():
        """Metric series over ?start=&end=, or over the session's zoom range when both are absent."""
        time_range = _time_range_arg()
        if time_range is None:
            points = session.metrics()
        else:
            points = downsample(apply_time_range(_dataset().entries, time_range), max_points)
        return jsonify({"points": [asdict(p) for p in points], "max_points": max_points})

    @app.route("/api/overview")
    def overview():
        dataset = _dataset()
        time_range = _time_range_arg()
        if time_range is None:
            stats = session.overview()
        else:
            stats = compute_stats(apply_time_range(dataset.entries, time_range))
        result = stats_to_dict(stats)
        result["dataset"] = dataset.name
        result["sources"] = dataset.source_count
        return jsonify(result)

    return app


if __name__ == "__main__":
    app = create_app()
    server = app.config["components"]["config"]["server"]
    app.run(host=server["host"], port=server["port"], debug=server["debug"])
