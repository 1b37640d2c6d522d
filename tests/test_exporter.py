"""Tests for the export routine, output routing and the outcome states."""

import pytest

from plantuml_exporter.encoder import decode, encode
from plantuml_exporter.exporter import (
    ExportResult,
    Notifier,
    Outcome,
    export_diagrams,
    exported_path,
    route_output,
    transform,
)
from plantuml_exporter.settings import OutputFormat, Settings, WriteMode
from plantuml_exporter.store import Document, FileSystemStore
from tests.conftest import BAD_PAYLOAD, MemoryStore, RecordingNotifier, make_block

_DEFAULT = Settings()
_IN_PLACE = Settings(write_mode=WriteMode.IN_PLACE)
_SOURCE = Document("notes/doc.md")
_TARGET = "notes/doc-exported.md"


def _reference(payload: str, settings: Settings = _DEFAULT) -> str:
    return (
        f"![PlantUML Diagram]({settings.server_url}/"
        f"{settings.output_format.value}/{encode(payload)})"
    )


# ---------------------------------------------------------------------------
# transform
# ---------------------------------------------------------------------------


class TestTransform:
    """Tests for the pure text transformation."""

    def test_scenario_intro_block_outro(self):
        text = f"Intro\n{make_block('Alice -> Bob: hi')}\nOutro"
        result = transform(text, _DEFAULT)
        assert result.text == f"Intro\n{_reference('Alice -> Bob: hi')}\nOutro"
        assert result.matched == 1
        assert result.encoded == 1
        lines = result.text.split("\n")
        assert lines[0] == "Intro"
        assert lines[-1] == "Outro"
        assert len(lines) == 3

    @pytest.mark.parametrize("n", [1, 2, 5])
    def test_n_blocks_n_references_no_fences(self, n):
        text = "\n\n".join(make_block(f"A{i} -> B{i}") for i in range(n))
        result = transform(text, _DEFAULT)
        assert result.text.count("![PlantUML Diagram](") == n
        assert "```" not in result.text
        assert result.matched == result.encoded == n

    def test_reference_token_decodes_to_payload(self):
        payload = "@startuml\nA -> B: x\n@enduml"
        result = transform(make_block(payload), _DEFAULT)
        token = result.text.rsplit("/", 1)[1].rstrip(")")
        assert decode(token) == payload

    def test_uses_configured_server_and_format(self):
        settings = Settings(server_url="http://x/plantuml", output_format=OutputFormat.SVG)
        result = transform(make_block("A -> B"), settings)
        assert result.text == f"![PlantUML Diagram](http://x/plantuml/svg/{encode('A -> B')})"

    def test_no_blocks_text_unchanged(self):
        text = "# Title\n\n```python\nprint(1)\n```\n"
        result = transform(text, _DEFAULT)
        assert result.text == text
        assert result.matched == 0
        assert result.encoded == 0

    def test_failing_block_span_unchanged(self, notifier):
        bad = make_block(BAD_PAYLOAD)
        text = f"a\n{make_block('ok')}\nb\n{bad}\nc"
        result = transform(text, _DEFAULT, notifier)
        assert result.text == f"a\n{_reference('ok')}\nb\n{bad}\nc"
        assert result.matched == 2
        assert result.encoded == 1
        assert len(result.failures) == 1
        assert len(notifier.messages) == 1
        assert notifier.messages[0].startswith("Error processing PlantUML block:")

    def test_encoded_never_exceeds_matched(self):
        text = "\n".join([make_block(BAD_PAYLOAD), make_block("x"), make_block(BAD_PAYLOAD)])
        result = transform(text, _DEFAULT)
        assert result.encoded <= result.matched
        assert (result.matched, result.encoded) == (3, 1)

    def test_settings_not_mutated(self):
        settings = Settings()
        transform(make_block("x"), settings)
        assert settings == Settings()


# ---------------------------------------------------------------------------
# exported_path
# ---------------------------------------------------------------------------


class TestExportedPath:
    """Tests for the generated document name."""

    def test_nested(self):
        assert exported_path(Document("notes/doc.md")) == "notes/doc-exported.md"

    def test_root_level(self):
        assert exported_path(Document("doc.md")) == "doc-exported.md"

    def test_other_extension(self):
        assert exported_path(Document("a/b.markdown")) == "a/b-exported.markdown"

    def test_no_extension(self):
        assert exported_path(Document("a/README")) == "a/README-exported"


# ---------------------------------------------------------------------------
# route_output
# ---------------------------------------------------------------------------


class TestRouteOutput:
    """Tests for the write-mode decision."""

    def test_new_file_created(self, notifier):
        store = MemoryStore({_SOURCE.path: "src"})
        result = route_output(WriteMode.NEW_FILE, _SOURCE, "out", store, notifier, count=2)
        assert result.outcome is Outcome.WRITTEN
        assert result.target == Document(_TARGET)
        assert store.files[_TARGET] == "out"
        assert store.files[_SOURCE.path] == "src"
        assert store.created == [_TARGET]
        assert notifier.messages == [
            "Exported 2 PlantUML diagram(s) to new file: doc-exported.md",
        ]

    def test_new_file_overwrites_existing_target(self, notifier):
        store = MemoryStore({_SOURCE.path: "src", _TARGET: "stale"})
        result = route_output(WriteMode.NEW_FILE, _SOURCE, "out", store, notifier, count=1)
        assert result.outcome is Outcome.WRITTEN
        assert store.files[_TARGET] == "out"
        assert store.created == []
        assert store.written == [_TARGET]
        assert "existing file: doc-exported.md" in notifier.messages[0]

    def test_in_place_overwrites_source(self, notifier):
        store = MemoryStore({_SOURCE.path: "src"})
        result = route_output(WriteMode.IN_PLACE, _SOURCE, "out", store, notifier, count=3)
        assert result.outcome is Outcome.WRITTEN
        assert result.target == _SOURCE
        assert store.files == {_SOURCE.path: "out"}
        assert store.created == []
        assert notifier.messages == ["Exported 3 PlantUML diagram(s) in place: doc.md"]

    def test_create_failure_reported(self, notifier):
        store = MemoryStore({_SOURCE.path: "src"})
        store.fail_creates = True
        result = route_output(WriteMode.NEW_FILE, _SOURCE, "out", store, notifier)
        assert result.outcome is Outcome.WRITE_FAILED
        assert result.target is None
        assert notifier.messages == ["Error saving exported file: create denied"]

    def test_write_failure_reported(self, notifier):
        store = MemoryStore({_SOURCE.path: "src"})
        store.fail_writes = True
        result = route_output(WriteMode.IN_PLACE, _SOURCE, "out", store, notifier)
        assert result.outcome is Outcome.WRITE_FAILED
        assert store.files[_SOURCE.path] == "src"
        assert notifier.messages == ["Error saving exported file: write denied"]

    def test_without_notifier(self):
        store = MemoryStore({_SOURCE.path: "src"})
        result = route_output(WriteMode.NEW_FILE, _SOURCE, "out", store)
        assert result.outcome is Outcome.WRITTEN
        assert result.message.startswith("Exported 0 PlantUML diagram(s)")


# ---------------------------------------------------------------------------
# export_diagrams
# ---------------------------------------------------------------------------


class TestExportDiagrams:
    """End-to-end tests over an in-memory store."""

    def test_recording_notifier_is_notifier(self, notifier):
        assert isinstance(notifier, Notifier)

    def test_no_active_document(self, notifier, memory_store):
        result = export_diagrams(None, memory_store, _DEFAULT, notifier)
        assert result.outcome is Outcome.NO_ACTIVE_DOCUMENT
        assert notifier.messages == ["No active Markdown file found."]
        assert memory_store.files == {}

    def test_read_failure(self, notifier, memory_store):
        result = export_diagrams(_SOURCE, memory_store, _DEFAULT, notifier)
        assert result.outcome is Outcome.READ_FAILED
        assert notifier.messages[0].startswith("Error reading file:")

    def test_no_blocks_found(self, notifier):
        store = MemoryStore({_SOURCE.path: "# Nothing here\n"})
        result = export_diagrams(_SOURCE, store, _DEFAULT, notifier)
        assert result.outcome is Outcome.NO_BLOCKS_FOUND
        assert result.ok
        assert result.target is None
        assert store.created == []
        assert store.written == []
        assert notifier.messages == ["No PlantUML code blocks found in the current file."]

    def test_no_changes_applied(self, notifier):
        text = f"{make_block(BAD_PAYLOAD)}\n{make_block(BAD_PAYLOAD)}"
        store = MemoryStore({_SOURCE.path: text})
        result = export_diagrams(_SOURCE, store, _DEFAULT, notifier)
        assert result.outcome is Outcome.NO_CHANGES_APPLIED
        assert not result.ok
        assert (result.matched, result.encoded) == (2, 0)
        assert store.created == []
        assert store.written == []
        # Two per-block failures, then the summary.
        assert len(notifier.messages) == 3
        assert notifier.messages[-1] == (
            "No PlantUML diagrams could be exported (2 block(s) failed)."
        )

    def test_partial_failure_still_written(self, notifier):
        bad = make_block(BAD_PAYLOAD)
        text = f"{make_block('A -> B')}\n{bad}"
        store = MemoryStore({_SOURCE.path: text})
        result = export_diagrams(_SOURCE, store, _DEFAULT, notifier)
        assert result.outcome is Outcome.WRITTEN
        assert (result.matched, result.encoded) == (2, 1)
        assert store.files[_TARGET] == f"{_reference('A -> B')}\n{bad}"
        assert "Exported 1 PlantUML diagram(s)" in notifier.messages[-1]

    def test_new_file_never_alters_source(self, notifier):
        text = f"Intro\n{make_block('Alice -> Bob: hi')}\nOutro"
        store = MemoryStore({_SOURCE.path: text})
        result = export_diagrams(_SOURCE, store, _DEFAULT, notifier)
        assert result.outcome is Outcome.WRITTEN
        assert result.target == Document(_TARGET)
        assert store.files[_SOURCE.path] == text
        assert store.written == []
        assert store.files[_TARGET] == f"Intro\n{_reference('Alice -> Bob: hi')}\nOutro"

    def test_in_place_never_creates(self, notifier):
        text = f"Intro\n{make_block('Alice -> Bob: hi')}\nOutro"
        store = MemoryStore({_SOURCE.path: text})
        result = export_diagrams(_SOURCE, store, _IN_PLACE, notifier)
        assert result.outcome is Outcome.WRITTEN
        assert store.created == []
        assert list(store.files) == [_SOURCE.path]
        assert store.files[_SOURCE.path] == f"Intro\n{_reference('Alice -> Bob: hi')}\nOutro"

    def test_new_file_idempotent(self, notifier):
        text = f"{make_block('A -> B')}\n{make_block('C -> D')}"
        store = MemoryStore({_SOURCE.path: text})
        export_diagrams(_SOURCE, store, _DEFAULT, notifier)
        first = dict(store.files)
        second = export_diagrams(_SOURCE, store, _DEFAULT, notifier)
        assert second.outcome is Outcome.WRITTEN
        assert store.files == first
        assert store.created == [_TARGET]
        assert len(store.files) == 2

    def test_write_failure(self, notifier):
        store = MemoryStore({_SOURCE.path: make_block("x")})
        store.fail_creates = True
        result = export_diagrams(_SOURCE, store, _DEFAULT, notifier)
        assert result.outcome is Outcome.WRITE_FAILED
        assert (result.matched, result.encoded) == (1, 1)
        assert notifier.messages[-1] == "Error saving exported file: create denied"

    def test_in_place_write_failure_keeps_source(self, tmp_path, monkeypatch, notifier):
        text = "Intro\n```plantuml\nA -> B\n```\nOutro\n"
        (tmp_path / "doc.md").write_text(text, encoding="utf-8")

        def refuse(self, target):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr("plantuml_exporter.store.Path.replace", refuse)
        store = FileSystemStore(tmp_path)
        result = export_diagrams(Document("doc.md"), store, _IN_PLACE, notifier)
        assert result.outcome is Outcome.WRITE_FAILED
        assert notifier.messages[-1].startswith("Error saving exported file: ")
        assert (tmp_path / "doc.md").read_text(encoding="utf-8") == text
        assert sorted(p.name for p in tmp_path.iterdir()) == ["doc.md"]

    def test_second_run_in_place_finds_nothing(self, notifier):
        store = MemoryStore({_SOURCE.path: make_block("x")})
        export_diagrams(_SOURCE, store, _IN_PLACE, notifier)
        result = export_diagrams(_SOURCE, store, _IN_PLACE, notifier)
        assert result.outcome is Outcome.NO_BLOCKS_FOUND

    def test_result_type(self, memory_store):
        assert isinstance(export_diagrams(None, memory_store, _DEFAULT), ExportResult)
