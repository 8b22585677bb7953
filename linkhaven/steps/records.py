"""
Record ingestion steps.

- LoadRecordsStep:
  Reads a JSON file containing either a list of record objects or an object
  with a "records" (or "bookmarks" + "notes") list, validates each entry into
  a Record and appends it to state.records.
- MockRecordLoader:
  Takes records inline from settings["records"]; used by test configs.
- FingerprintRecordsStep:
  Computes the 16-char hex SimHash for every record's title, description and
  tags and stores it in state.fingerprints so a storage layer can persist it
  alongside the record.

Invalid entries are reported and skipped; a missing file raises
FileNotFoundError because the pipeline cannot do anything useful without
input.
"""

import json
import os
from datetime import datetime, timezone
from typing import Any, Dict, List

from pydantic import ValidationError

from ..core.base import PipelineStep
from ..core.models import PipelineState, Record, RecordKind
from ..similarity.simhash import iter_fingerprints


def _coerce_records(raw: List[Dict[str, Any]], default_kind: RecordKind, prefix: str) -> List[Record]:
    records = []
    for entry in raw:
        if not isinstance(entry, dict):
            print(f"[{prefix}] Skipping non-object entry: {entry!r}")
            continue
        entry = dict(entry)
        if "createdAt" in entry and "created_at" not in entry:
            entry["created_at"] = entry["createdAt"]
        if "linkHealth" in entry and "link_health" not in entry:
            entry["link_health"] = entry["linkHealth"]
        entry.setdefault("kind", default_kind.value)
        try:
            records.append(Record.model_validate(entry))
        except ValidationError as e:
            print(f"[{prefix}] Skipping invalid record {entry.get('id', '?')}: {e.error_count()} error(s)")
    return records


def _parse_payload(payload: Any, prefix: str) -> List[Record]:
    if isinstance(payload, list):
        return _coerce_records(payload, RecordKind.BOOKMARK, prefix)
    if isinstance(payload, dict):
        if "records" in payload:
            return _coerce_records(payload["records"], RecordKind.BOOKMARK, prefix)
        return (
            _coerce_records(payload.get("bookmarks", []), RecordKind.BOOKMARK, prefix)
            + _coerce_records(payload.get("notes", []), RecordKind.NOTE, prefix)
        )
    raise ValueError(f"Unsupported records payload of type {type(payload).__name__}")


class LoadRecordsStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        path = self.config.get("path")
        if not path:
            raise ValueError("load_records requires a 'path' setting.")
        if not os.path.exists(path):
            raise FileNotFoundError(f"Records file not found: {path}")

        with open(path, encoding="utf-8") as f:
            payload = json.load(f)

        records = _parse_payload(payload, self.__class__.__name__)
        state.records.extend(records)
        print(f"[{self.__class__.__name__}] Loaded {len(records)} records from {path}")
        return state


class MockRecordLoader(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        raw = self.config.get("records", [])
        records = _parse_payload([dict(r) for r in raw], self.__class__.__name__)
        state.records.extend(records)
        print(f"[{self.__class__.__name__}] Loaded {len(records)} mock records.")
        return state


class FingerprintRecordsStep(PipelineStep):
    def execute(self, state: PipelineState) -> PipelineState:
        batch_size = int(self.config.get("batch_size", 500))
        texts = (
            " ".join([r.title or "", r.description or "", *r.tags])
            for r in state.records
        )

        hexes: List[str] = []
        for batch in iter_fingerprints(texts, batch_size):
            hexes.extend(fp.to_hex() for fp in batch)

        state.fingerprints = {r.id: h for r, h in zip(state.records, hexes)}
        state.generated_at = datetime.now(timezone.utc).replace(microsecond=0).isoformat()
        print(f"[{self.__class__.__name__}] Fingerprinted {len(hexes)} records.")
        return state
