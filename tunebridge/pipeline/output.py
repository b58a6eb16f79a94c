"""JSON output formatter for migration results and PIF documents.

Migration output schema:
{
    "migration": {
        "source": {"service": "youtube", "playlist_id": "PL123"},
        "destination": {"service": "spotify", "playlist_id": "sp-1"},
        "playlist_name": "Sample Mix",
        "track_count": 2,
        "duration_seconds": 1.23
    },
    "write_report": {"attempted": 2, "added": 2, "failed": 0, "skipped": null, "notes": []},
    "match_report": {
        "total_tracks": 2,
        "rule_counts": {"mbid": 0, "isrc": 1, "exact": 0, "fuzzy": 1},
        "matched_isrc_pct": 50.0,
        "matched_fuzzy_pct": 50.0,
        "unresolved": []
    },
    "circuit_breakers": {"youtube": {"state": "CLOSED", ...}},
    "response_cache": {"youtube": {"hits": 3, "misses": 5, "evictions": 0, "size": 5}}
}
"""

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Union

from tunebridge.models.data_models import CircuitBreakerMetrics, MigrationResult
from tunebridge.models.pif import PIF


class JSONOutputFormatter:
    """Formats migration results and PIF documents as JSON."""

    def format(self, result: MigrationResult) -> Dict[str, Any]:
        """
        Format migration result as JSON-serializable dictionary.

        Args:
            result: Complete migration result

        Returns:
            Dictionary with migration, write_report, match_report,
            circuit_breakers and response_cache sections
        """
        return {
            "migration": {
                "source": {
                    "service": result.source_service,
                    "playlist_id": result.source_playlist_id,
                },
                "destination": {
                    "service": result.dest_service,
                    "playlist_id": result.dest_id,
                },
                "playlist_name": result.playlist_name,
                "track_count": result.track_count,
                "duration_seconds": round(result.duration_seconds, 2),
            },
            "write_report": asdict(result.write_report),
            "match_report": asdict(result.match_report),
            "circuit_breakers": {
                name: self._format_metrics(metrics)
                for name, metrics in result.breaker_metrics.items()
            },
            "response_cache": {
                name: asdict(metrics)
                for name, metrics in result.cache_metrics.items()
            },
        }

    @staticmethod
    def _format_metrics(metrics: CircuitBreakerMetrics) -> Dict[str, Any]:
        return {
            "state": metrics.state.value,
            "failure_count": metrics.failure_count,
            "success_count": metrics.success_count,
            "rejected_count": metrics.rejected_count,
            "last_failure_time": metrics.last_failure_time,
            "last_state_change": metrics.last_state_change,
        }

    @staticmethod
    def format_pif(pif: PIF) -> Dict[str, Any]:
        """PIF as a plain dict; unset optional fields are omitted."""
        return pif.model_dump(exclude_none=True)

    def save(self, result: MigrationResult, path: Union[str, Path] = "out/migration.json") -> None:
        """
        Save formatted migration result to a JSON file.

        Creates parent directories if they don't exist.
        """
        self._write(self.format(result), path)

    def save_pif(self, pif: PIF, path: Union[str, Path]) -> None:
        self._write(self.format_pif(pif), path)

    @staticmethod
    def _write(data: Dict[str, Any], path: Union[str, Path]) -> None:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
