import json

import pytest
from loguru import logger

from linkhaven.configs.full_config import build_demo_config, build_full_config
from linkhaven.core.factory import StepFactory
from linkhaven.core.logging import PipelineLogger
from linkhaven.core.models import DuplicateReason, PipelineState, RecordKind
from linkhaven.core.orchestrator import PipelineOrchestrator
from linkhaven.core.validator import validate_pipeline_config
from linkhaven.run import main
from linkhaven.steps.records import LoadRecordsStep


@pytest.fixture
def records_file(tmp_path):
    payload = {
        "bookmarks": [
            {"id": "b1", "title": "Tokio docs", "url": "https://tokio.rs/tokio/tutorial",
             "tags": ["rust", "async"], "createdAt": 1_600_000_000_000, "linkHealth": "dead"},
            {"id": "b2", "title": "Tokio tutorial", "url": "https://www.tokio.rs/tokio/tutorial/",
             "tags": ["rust"], "createdAt": 1_650_000_000_000},
            {"title": "missing id"},
            "not an object",
        ],
        "notes": [
            {"id": "n1", "title": "Ideas", "description": "Try the select! macro"},
        ],
    }
    path = tmp_path / "records.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_load_records_step(records_file):
    state = LoadRecordsStep({"path": str(records_file)}).run(PipelineState())

    assert [r.id for r in state.records] == ["b1", "b2", "n1"]
    assert state.records[0].created_at == 1_600_000_000_000
    assert state.records[0].link_health == "dead"
    assert state.records[2].kind == RecordKind.NOTE
    assert state.execution_log[-1]["counts_after"]["records"] == 3


def test_load_records_missing_file(tmp_path):
    step = LoadRecordsStep({"path": str(tmp_path / "nope.json")})
    with pytest.raises(FileNotFoundError):
        step.run(PipelineState())


def test_demo_pipeline_end_to_end(tmp_path):
    config = build_demo_config()
    validate_pipeline_config(config)
    state = PipelineOrchestrator(config, log_dir=str(tmp_path)).run(PipelineState(), show_summary=False)

    assert len(state.records) == 5
    assert set(state.fingerprints) == {"b1", "b2", "b3", "b4", "n1"}
    assert all(len(h) == 16 for h in state.fingerprints.values())

    exact = [g for g in state.duplicates.groups if g.reason == DuplicateReason.EXACT_URL]
    assert [g.member_ids for g in exact] == [["b1", "b2"]]
    plan = next(p for p in state.merge_plans if p.group_id == "exact_b1")
    assert plan.keep_id == "b1"
    assert plan.delete_ids == ["b2"]

    assert state.cleanup is not None
    assert state.graph is not None
    assert all(n.has_position for n in state.graph.nodes)
    assert "record:n1" in state.orphans
    assert state.depth == 0


def test_full_config_pipeline_from_file(records_file, tmp_path):
    config = build_full_config(str(records_file), width=500, height=400, iterations=20)
    validate_pipeline_config(config)
    state = PipelineOrchestrator(config, log_dir=str(tmp_path)).run(show_summary=False)

    assert [g.member_ids for g in state.duplicates.groups] == [["b1", "b2"]]
    assert [r.id for r in state.cleanup.broken_links] == ["b1"]
    for node in state.graph.nodes:
        assert 30 <= node.x <= 470
        assert 30 <= node.y <= 370


def test_summary_table_lists_modules_before_children(tmp_path):
    orchestrator = PipelineOrchestrator(build_demo_config(), log_dir=str(tmp_path))
    state = orchestrator.run(show_summary=False)

    ordered = orchestrator._reorder_logs_header_style(state.execution_log)
    names = [e["step"] for e in ordered]
    assert names.index("Deduplication") < names.index("FindDuplicatesStep")
    assert names.index("KnowledgeGraph") < names.index("LayoutGraphStep")

    table = orchestrator.build_summary_table(state, 1.0)
    # 11 step rows plus the total
    assert table.row_count == 12


def test_debug_run_writes_log_file(tmp_path):
    config = build_demo_config(iterations=20, debug=True)
    orchestrator = PipelineOrchestrator(config, log_dir=str(tmp_path))
    orchestrator.run()
    logger.remove()

    log_file = tmp_path / f"pipeline_debug_{orchestrator.run_id}.log"
    text = log_file.read_text(encoding="utf-8")
    assert "LAUNCHING PIPELINE: Demo_Vault_Analysis" in text
    assert "FINISHED: FindDuplicatesStep" in text
    assert "EXECUTION SUMMARY" in text


def test_logger_truncates_large_payloads(tmp_path):
    pipeline_logger = PipelineLogger("trunc", debug=False, log_dir=str(tmp_path))
    data = {"items": list(range(60)), "text": "x" * 1200}
    clean = pipeline_logger._truncate_large(data)

    assert len(clean["items"]) == 51
    assert clean["items"][-1] == "... [truncated 10 items]"
    assert clean["text"].endswith("[truncated 200 chars]")
    assert not list(tmp_path.iterdir())


def test_validator_accepts_shipped_configs():
    validate_pipeline_config(build_demo_config())
    validate_pipeline_config(build_full_config("records.json"))


@pytest.mark.parametrize("mutate", [
    lambda c: c["steps"].append({"type": "does_not_exist", "settings": {}}),
    lambda c: c["steps"][2]["settings"]["steps"][0]["settings"].update(url_threshold=150),
    lambda c: c["steps"][3]["settings"]["steps"][1]["settings"].update(threshold="ten"),
    lambda c: c["steps"][3]["settings"]["steps"][2]["settings"].update(width=50),
    lambda c: c["steps"][3]["settings"]["steps"][2]["settings"].update(iterations=0),
    lambda c: c["steps"].insert(0, {"type": "load_records", "settings": {}}),
])
def test_validator_rejects_bad_configs(mutate):
    config = build_demo_config()
    mutate(config)
    with pytest.raises(ValueError):
        validate_pipeline_config(config)


def test_factory_rejects_unknown_type():
    with pytest.raises(ValueError):
        StepFactory.create({"type": "nope", "settings": {}})
    assert StepFactory.is_registered("module")
    assert StepFactory.is_registered("layout_graph")


def test_cli_demo_run_writes_output(tmp_path, monkeypatch):
    monkeypatch.delenv("LINKHAVEN_DEBUG", raising=False)
    monkeypatch.chdir(tmp_path)
    out = tmp_path / "state.json"

    assert main(["--out", str(out), "--iterations", "10"]) == 0

    saved = json.loads(out.read_text(encoding="utf-8"))
    assert len(saved["records"]) == 5
    assert saved["duplicates"]["potential_savings"] >= 1


def test_cli_reports_bad_config(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert main(["records.json", "--width", "10", "--out", str(tmp_path / "x.json")]) == 2
