import json

import pytest
from conftest import FakeVectorStore

from vlab.config.settings import settings
from vlab.src.core.ingestor import HASH_CACHE_FILENAME, IngestionPipeline
from vlab.src.database.vector_store import LabVectorStore


@pytest.fixture
def docs(tmp_path):
    source = tmp_path / "docs"
    source.mkdir()
    (source / "ohms_law.txt").write_text("Objective: verify Ohm's law.\n\nApparatus: resistor, ammeter, voltmeter.", encoding="utf-8")
    (source / "notes.md").write_text("# Precautions\n\nKeep connections tight.", encoding="utf-8")
    (source / "diagram.pdf").write_bytes(b"%PDF-1.4")
    return source


def make_pipeline(store, docs, tmp_path):
    return IngestionPipeline(store, source_dir=docs, cache_dir=tmp_path / "processed")


def test_run_ingests_supported_files(docs, tmp_path):
    store = FakeVectorStore()
    summary = make_pipeline(store, docs, tmp_path).run()

    assert summary["total_files"] == 2
    assert summary["files_processed"] == 2
    assert summary["files_skipped"] == 0
    assert summary["total_chunks"] == 2
    sources = [meta["source_file"] for _, metadatas in store.added for meta in metadatas]
    assert sources == ["notes.md", "ohms_law.txt"]
    assert (tmp_path / "processed" / HASH_CACHE_FILENAME).exists()


def test_unchanged_files_hit_the_cache(docs, tmp_path):
    store = FakeVectorStore()
    make_pipeline(store, docs, tmp_path).run()
    stored_batches = len(store.added)

    summary = make_pipeline(store, docs, tmp_path).run()
    assert summary["files_skipped"] == 2
    assert summary["total_chunks"] == 0
    assert len(store.added) == stored_batches


def test_changed_file_is_reingested(docs, tmp_path):
    store = FakeVectorStore()
    make_pipeline(store, docs, tmp_path).run()
    (docs / "notes.md").write_text("# Precautions\n\nSwitch off the supply first.", encoding="utf-8")

    summary = make_pipeline(store, docs, tmp_path).run()
    assert summary["files_processed"] == 1
    assert summary["files_skipped"] == 1


def test_cache_is_kept_per_table(docs, tmp_path):
    make_pipeline(FakeVectorStore(table_name="experiment_docs"), docs, tmp_path).run()

    local = FakeVectorStore(table_name="experiment_docs_local")
    summary = make_pipeline(local, docs, tmp_path).run()
    assert summary["files_processed"] == 2
    assert local.count() == 2

    cache = json.loads((tmp_path / "processed" / HASH_CACHE_FILENAME).read_text(encoding="utf-8"))
    assert set(cache) == {"experiment_docs", "experiment_docs_local"}
    assert set(cache["experiment_docs_local"]) == {"notes.md", "ohms_law.txt"}


def test_empty_table_ignores_cached_hashes(docs, tmp_path):
    make_pipeline(FakeVectorStore(), docs, tmp_path).run()

    emptied = FakeVectorStore()
    summary = make_pipeline(emptied, docs, tmp_path).run()
    assert summary["files_processed"] == 2
    assert summary["files_skipped"] == 0
    assert emptied.count() == 2


class _KeywordEmbedder:
    def _embed(self, text):
        lowered = text.lower()
        return [float(lowered.count(k)) for k in ("ohm", "precaution")]

    def embed_documents(self, texts):
        return [self._embed(t) for t in texts]

    def embed_query(self, text):
        return self._embed(text)


def test_dropped_lancedb_table_is_refilled(docs, tmp_path):
    db_path = str(tmp_path / "db")
    store = LabVectorStore(_KeywordEmbedder(), 2, db_path=db_path, table_name="docs")
    make_pipeline(store, docs, tmp_path).run()
    store.drop_table()

    reopened = LabVectorStore(_KeywordEmbedder(), 2, db_path=db_path, table_name="docs")
    summary = make_pipeline(reopened, docs, tmp_path).run()
    assert summary["files_processed"] == 2
    assert reopened.count() == 2


def test_corrupt_cache_starts_fresh(docs, tmp_path):
    cache = tmp_path / "processed" / HASH_CACHE_FILENAME
    cache.parent.mkdir()
    cache.write_text("{not json", encoding="utf-8")
    summary = make_pipeline(FakeVectorStore(), docs, tmp_path).run()
    assert summary["files_processed"] == 2
    assert set(json.loads(cache.read_text(encoding="utf-8"))["experiment_docs"]) == {"notes.md", "ohms_law.txt"}


def test_flat_cache_layout_is_discarded(docs, tmp_path):
    cache = tmp_path / "processed" / HASH_CACHE_FILENAME
    cache.parent.mkdir()
    cache.write_text(json.dumps({"notes.md": "abc"}), encoding="utf-8")
    summary = make_pipeline(FakeVectorStore(["existing row"]), docs, tmp_path).run()
    assert summary["files_processed"] == 2


def test_missing_source_dir(tmp_path):
    summary = make_pipeline(FakeVectorStore(), tmp_path / "absent", tmp_path).run()
    assert summary["total_files"] == 0


def test_empty_file_stores_nothing(tmp_path):
    source = tmp_path / "docs"
    source.mkdir()
    (source / "empty.txt").write_text("   \n", encoding="utf-8")
    store = FakeVectorStore()
    summary = make_pipeline(store, source, tmp_path).run()
    assert summary["total_chunks"] == 0
    assert store.added == []


def test_chunks_respect_size_and_overlap(tmp_path):
    pipeline = make_pipeline(FakeVectorStore(), tmp_path, tmp_path)
    text = " ".join(f"word{i}" for i in range(1200))
    chunks = pipeline.chunk(text)
    assert len(chunks) > 1
    assert all(len(c) <= settings.CHUNK_SIZE for c in chunks)
    assert chunks[0].split()[-1] in chunks[1]


def test_read_document_parses_docx(tmp_path):
    from docx import Document

    document = Document()
    document.add_paragraph("Aim: study the diode characteristics.")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Diode"
    table.rows[0].cells[1].text = "1N4007"
    path = tmp_path / "diode.docx"
    document.save(str(path))

    text = IngestionPipeline.read_document(path)
    assert "Aim: study the diode characteristics." in text
    assert "Diode | 1N4007" in text


def test_read_document_falls_back_to_text_for_plain_docx(tmp_path):
    path = tmp_path / "exported.docx"
    path.write_text("Plain text saved with a .docx name.", encoding="utf-8")
    assert IngestionPipeline.read_document(path) == "Plain text saved with a .docx name."


def test_compute_file_hash_is_md5(tmp_path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"abc")
    assert IngestionPipeline.compute_file_hash(path) == "900150983cd24fb0d6963f7d28e17f72"
