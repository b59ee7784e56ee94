import json
import os
import threading
from collections import defaultdict

import jsonschema

DEFAULT_SCHEMA_PATH = os.path.join(os.path.dirname(__file__), "schemas", "log_record.json")


class RecordValidator:
    """Validates decoded log records against a JSON schema.

    Stats are shared by every ingestion worker, so updates go through a lock.
    """

    def __init__(self, schema_path=DEFAULT_SCHEMA_PATH):
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        self._validator = jsonschema.Draft202012Validator(schema)
        self._lock = threading.Lock()
        self._stats = self._empty_stats()

    @staticmethod
    def _empty_stats():
        return {
            "total": 0,
            "valid": 0,
            "invalid": 0,
            "error_types": defaultdict(int),
        }

    def validate(self, record):
        """Validate a decoded record against the schema.

        Returns:
            tuple: (is_valid: bool, errors: list[str])
        """
        errors = list(self._validator.iter_errors(record))

        with self._lock:
            self._stats["total"] += 1
            if not errors:
                self._stats["valid"] += 1
                return True, []

            self._stats["invalid"] += 1
            for error in errors:
                self._stats["error_types"][error.validator] += 1

        return False, [error.message for error in errors]

    def get_stats(self):
        """Return a copy of the stats dict."""
        with self._lock:
            stats = dict(self._stats)
            stats["error_types"] = dict(stats["error_types"])
        return stats

    def reset_stats(self):
        """Reset all stat counters."""
        with self._lock:
            self._stats = self._empty_stats()
