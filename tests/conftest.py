import json
from datetime import datetime, timedelta, timezone

import pytest

from logpulse.app import create_app
from logpulse.config import Config
from logpulse.ingest import ingest
from logpulse.parser import parse_line
from logpulse.session import LogSession
from logpulse.validator import RecordValidator

BASE_TIME = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)
BASE_MS = 1705314600000


def make_record(offset_ms=0, level="Info", component="Runner", message="test message", **extra):
    """A valid record `offset_ms` after BASE_TIME. Extra keyword args become top-level fields."""
    ts = BASE_TIME + timedelta(milliseconds=offset_ms)
    record = {
        "eventTimestamp": ts.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "component": component,
        "traceLevel": level,
        "message": message,
    }
    record.update(extra)
    return record


def make_content(records):
    return "\n".join(json.dumps(r) for r in records) + "\n"


@pytest.fixture
def record():
    return make_record


@pytest.fixture
def entry():
    """Factory: build a parsed LogEntry from make_record() arguments."""
    def _entry(offset_ms=0, source="test.log", **kwargs):
        parsed = parse_line(json.dumps(make_record(offset_ms, **kwargs)), source=source)
        assert parsed is not None
        return parsed
    return _entry


@pytest.fixture
def content():
    return make_content


@pytest.fixture
def validator():
    return RecordValidator()


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def scenario_sources():
    """Three sources: 100 Info/Error lines over 2 minutes, a corrupt file, 50 lines over the same window."""
    first = [
        make_record(i * 1200, level="Error" if i % 10 == 0 else "Info", component="Runner",
                    message=f"first-{i}")
        for i in range(100)
    ]
    second = [
        make_record(i * 2400 + 600, level="Info", component="Designer", message=f"second-{i}")
        for i in range(50)
    ]
    corrupt = "this is not json\n{\"eventTimestamp\": \"2024-01-15T10:30:00Z\", \"comp\n\x00\x01garbage"
    return [
        ("agent-a.log", make_content(first)),
        ("broken.log", corrupt),
        ("agent-b.log", make_content(second)),
    ]


@pytest.fixture
def scenario_dataset(scenario_sources):
    return ingest(scenario_sources)


@pytest.fixture
def app(config):
    application = create_app(config=config, session=LogSession.from_config(config))
    application.config["TESTING"] = True
    return application


@pytest.fixture
def client(app):
    """Create a Flask test client."""
    return app.test_client()


@pytest.fixture
def loaded_client(app, client, scenario_sources):
    """Test client whose session already holds the three-source scenario."""
    app.config["components"]["session"].load(scenario_sources)
    return client


@pytest.fixture
def base_ms():
    """Epoch milliseconds of BASE_TIME."""
    return BASE_MS
