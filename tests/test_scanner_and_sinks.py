import json
import logging
from pathlib import Path

import pytest

from flatfield.core.flattener import Flattener
from flatfield.core.loader import discover_parser_plugins, discover_sink_plugins, select_sink_plugins
from flatfield.core.models import FieldRecord, FlattenedDocument, FlattenerConfig
from flatfield.core.reporting import Reporter
from flatfield.core.scanner import DirectoryScanner, SingleFileScanner, configure_logging
from flatfield.sinks.fields import FieldsSink
from flatfield.sinks.terms import TermsSink


@pytest.fixture()
def corpus(tmp_path: Path) -> Path:
    root = tmp_path / "corpus"
    (root / "nested").mkdir(parents=True)
    (root / "node_modules").mkdir()
    (root / "a.json").write_text('{"user": {"name": "ann", "tags": ["x", "y"]}}')
    (root / "nested" / "b.yaml").write_text("user:\n  name: bob\n")
    (root / "c.jsonl").write_text('{"user": {"name": "ann"}}\n{"bad\\u0000key": 1}\n{"user": "flat"}\n')
    (root / "deep.json").write_text('{"a": {"b": {"c": {"d": 1}}}}')
    (root / "notes.txt").write_text('{"ignored": true}')
    (root / "node_modules" / "skip.json").write_text('{"skipped": true}')
    return root


def make_scanner(root: Path, sinks, **options):
    return DirectoryScanner(
        root=root,
        parser_plugins=discover_parser_plugins(),
        sink_plugins=sinks,
        flattener=Flattener(FlattenerConfig(depth_limit=3)),
        include_globs=["*"],
        exclude_dirs=["node_modules"],
        workers=2,
        show_progress=False,
        **options,
    )


def test_sink_discovery_and_selection():
    plugins = discover_sink_plugins()
    assert {"fields", "terms"} <= set(plugins)
    assert set(select_sink_plugins(plugins, "all")) == set(plugins)
    assert list(select_sink_plugins(plugins, " terms ,nope")) == ["terms"]
    assert select_sink_plugins(plugins, "") == {}


def test_directory_scan_flattens_and_rejects_per_document(corpus: Path):
    fields_sink = FieldsSink()
    scanner = make_scanner(corpus, {"fields": fields_sink})
    scanner.scan()

    assert scanner.documents_flattened == 4
    assert scanner.documents_rejected == 2

    flattened = {(d.file_path.name, d.line_num) for d in fields_sink.documents}
    assert flattened == {("a.json", 1), ("b.yaml", 1), ("c.jsonl", 1), ("c.jsonl", 3)}

    reasons = {(r.file_path.name, r.line_num): r.reason for r in fields_sink.rejections}
    assert reasons == {("c.jsonl", 2): "ReservedCharacterInKey", ("deep.json", 1): "DepthLimitExceeded"}


def test_rejections_are_logged(corpus: Path, caplog):
    with caplog.at_level(logging.WARNING, logger="flatfield"):
        make_scanner(corpus, {"fields": FieldsSink()}).scan()
    messages = [r.getMessage() for r in caplog.records]
    assert any("Rejected document" in m and "deep.json" in m for m in messages)


def test_fields_sink_outputs(corpus: Path, tmp_path: Path):
    sinks = {"fields": FieldsSink(), "terms": TermsSink()}
    make_scanner(corpus, sinks).scan()
    out = tmp_path / "out"
    Reporter(out).write_all(sinks)

    lines = (out / "fields.jsonl").read_text().splitlines()
    docs = [json.loads(line) for line in lines]
    assert [(Path(d["file"]).name, d["line_num"]) for d in docs] == [
        ("a.json", 1),
        ("c.jsonl", 1),
        ("c.jsonl", 3),
        ("b.yaml", 1),
    ]
    assert docs[0]["fields"] == [
        {"name": "json", "value": "ann"},
        {"name": "json._keyed", "value": "user.name\u0000ann"},
        {"name": "json", "value": "x"},
        {"name": "json._keyed", "value": "user.tags\u0000x"},
        {"name": "json", "value": "y"},
        {"name": "json._keyed", "value": "user.tags\u0000y"},
    ]

    rejected = json.loads((out / "rejected.json").read_text())
    assert [r["reason"] for r in rejected] == ["ReservedCharacterInKey", "DepthLimitExceeded"]

    index = json.loads((out / "index.json").read_text())
    assert index[0] == {"sink": "fields", "documents": 4, "rejected": 2, "fields": 12, "artifacts": 2}
    assert (out / "summary.md").read_text().startswith("# Flattening Summary")


def test_terms_sink_counts_values_per_path():
    sink = TermsSink()
    sink.begin(FlattenerConfig())
    doc = FlattenedDocument(
        file_path=Path("x.json"),
        line_num=1,
        fields=[
            FieldRecord("json", "ann"),
            FieldRecord("json._keyed", "user.name\0ann"),
            FieldRecord("json", "ann"),
            FieldRecord("json._keyed", "user.name\0ann"),
            FieldRecord("json", "bob"),
            FieldRecord("json._keyed", "user.name\0bob"),
            FieldRecord("json", "1"),
            FieldRecord("json._keyed", "id\x001"),
        ],
    )
    sink.process_document(doc)
    assert dict(sink.terms["user.name"]) == {"ann": 2, "bob": 1}
    assert dict(sink.terms["id"]) == {"1": 1}


def test_terms_sink_outputs(tmp_path: Path):
    sink = TermsSink()
    sink.begin(FlattenerConfig(root_field_name="attrs"))
    sink.process_document(
        FlattenedDocument(
            file_path=Path("x.json"),
            line_num=1,
            fields=[FieldRecord("attrs", "v"), FieldRecord("attrs._keyed", "k\0v")],
        )
    )
    summary = sink.write_outputs(tmp_path)
    assert summary == {"keys": 1, "artifacts": 2}
    data = json.loads((tmp_path / "terms.json").read_text())
    assert data == [{"key": "k", "distinct_values": 1, "occurrences": 1, "top_values": [["v", 1]]}]
    assert "`k`" in (tmp_path / "terms.md").read_text()


def test_exclude_dirs_and_unknown_extensions_are_skipped(corpus: Path):
    sink = FieldsSink()
    make_scanner(corpus, {"fields": sink}).scan()
    names = {d.file_path.name for d in sink.documents} | {r.file_path.name for r in sink.rejections}
    assert "skip.json" not in names
    assert "notes.txt" not in names


def test_max_file_size_skips_large_files(corpus: Path):
    (corpus / "big.json").write_text('{"big": "' + "x" * 2048 + '"}')
    sink = FieldsSink()
    make_scanner(corpus, {"fields": sink}, max_file_size=1024).scan()
    assert "big.json" not in {d.file_path.name for d in sink.documents}


def test_empty_directory_still_runs_sink_lifecycle(tmp_path: Path):
    sink = FieldsSink()
    make_scanner(tmp_path, {"fields": sink}).scan()
    assert sink.config is not None
    assert sink.documents == []


def test_single_file_scanner_defaults_to_json(tmp_path: Path):
    p = tmp_path / "payload"
    p.write_text('{"a": null}')
    sink = FieldsSink()
    scanner = SingleFileScanner(
        file_path=p,
        parser_plugins=discover_parser_plugins(),
        sink_plugins={"fields": sink},
        flattener=Flattener(FlattenerConfig(null_value="NULL")),
    )
    scanner.scan()
    assert scanner.documents_flattened == 1
    assert sink.documents[0].fields == [FieldRecord("json", "NULL"), FieldRecord("json._keyed", "a\0NULL")]


def test_configure_logging_levels():
    logger = configure_logging(verbose=True, logger_name="flatfield.test")
    assert logger.level == logging.INFO
    assert configure_logging(verbose=False, logger_name="flatfield.test").level == logging.WARNING
    assert len(logger.handlers) == 1


def test_single_file_scanner_skips_oversized_file(tmp_path: Path, caplog):
    p = tmp_path / "big.jsonl"
    p.write_text('{"a": 1}\n' * 10)
    sink = FieldsSink()
    scanner = SingleFileScanner(
        file_path=p,
        parser_plugins=discover_parser_plugins(),
        sink_plugins={"fields": sink},
        flattener=Flattener(FlattenerConfig()),
        max_file_size=20,
    )
    with caplog.at_level(logging.WARNING, logger="flatfield"):
        scanner.scan()
    assert scanner.skipped
    assert (scanner.documents_flattened, scanner.documents_rejected) == (0, 0)
    assert sink.documents == [] and sink.rejections == []
    assert sink.config is not None
    assert any("Skipping" in r.getMessage() and "big.jsonl" in r.getMessage() for r in caplog.records)


def test_trailing_content_rejects_the_document(tmp_path: Path):
    (tmp_path / "two.json").write_text('{"a": "x"} {"b": "y"}')
    (tmp_path / "lines.jsonl").write_text('{"a": "x"}\n{"a": "y"} trailing\n')
    sink = FieldsSink()
    scanner = make_scanner(tmp_path, {"fields": sink})
    scanner.scan()
    assert {(d.file_path.name, d.line_num) for d in sink.documents} == {("lines.jsonl", 1)}
    assert {(r.file_path.name, r.line_num) for r in sink.rejections} == {("two.json", 1), ("lines.jsonl", 2)}
