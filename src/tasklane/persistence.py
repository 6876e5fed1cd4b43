"""JSON file stand-in for the persistence collaborator (CLI and MCP use only)."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from tasklane.models import EngineConfig, MutationRequest

logger = logging.getLogger(__name__)

DEFAULT_DB_FILE = "tasklane.json"


class Store:
    """Reads and writes raw task records plus the engine config."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_FILE):
        self.db_path = Path(db_path)

    def load(self) -> tuple[EngineConfig | None, list[dict]]:
        """Return (config_or_None, raw task records)."""
        if not self.db_path.exists():
            return None, []

        raw = json.loads(self.db_path.read_text())

        # Either {"config": {...}, "tasks": [...]} or a bare list of records
        if isinstance(raw, list):
            return None, raw
        config = None
        if "config" in raw:
            config = EngineConfig.from_dict(raw["config"])
        return config, list(raw.get("tasks", []))

    def save(self, config: EngineConfig | None, records: list[dict]) -> None:
        raw: dict = {}
        if config is not None:
            raw["config"] = config.to_dict()
        raw["tasks"] = records
        self.db_path.write_text(json.dumps(raw, indent=4))

    def commit(self, request: MutationRequest) -> bool:
        """Apply a patch to the matching record; False if no record matches."""
        config, records = self.load()
        payload = request.to_dict()
        for record in records:
            if str(record.get("id")) != request.task_id:
                continue
            team = record.get("teamId", record.get("team_id"))
            if request.team_id is not None and team is not None and team != request.team_id:
                continue
            for key, value in payload["patch"].items():
                if key == "start_date":
                    record.pop("start_date", None)
                    key = "startDate"
                record[key] = value
            self.save(config, records)
            logger.info("Committed %s to %s", sorted(payload["patch"]), request.task_id)
            return True
        logger.warning("No task %s to commit to", request.task_id)
        return False

    def generate_id(self, records: list[dict]) -> str:
        """Generate the next T-N id."""
        existing = [
            int(str(r["id"]).split("-")[1])
            for r in records
            if str(r.get("id", "")).startswith("T-") and str(r["id"]).split("-")[1].isdigit()
        ]
        next_num = max(existing, default=0) + 1
        return f"T-{next_num}"
