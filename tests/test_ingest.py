import pytest
from docx import Document as DocxDocument
from langchain_core.documents import Document
from langchain_core.embeddings import DeterministicFakeEmbedding
from langchain_core.vectorstores import InMemoryVectorStore

from freight_assistant import ingest
from freight_assistant.graph.retriever import DocumentRetriever, VectorStoreSearch
from freight_assistant.models import Category


def _write_docx(path, paragraphs, rows=()):
    doc = DocxDocument()
    for text in paragraphs:
        doc.add_paragraph(text)
    if rows:
        table = doc.add_table(rows=len(rows), cols=len(rows[0]))
        for i, row in enumerate(rows):
            for j, value in enumerate(row):
                table.cell(i, j).text = value
    doc.save(str(path))


@pytest.fixture
def knowledge_dir(tmp_path):
    root = tmp_path / "kb"
    root.mkdir()
    _write_docx(
        root / "Barley.docx",
        ["Barley rail freight from Saskatoon to Vancouver.", "Transit time is 5-7 days."],
        rows=[("Route", "Rate"), ("Saskatoon - Vancouver", "USD 42 per tonne")],
    )
    _write_docx(root / "Green_Lentils.docx", ["Green lentils ship in 20ft containers."])
    (root / "Oats.txt").write_text("Oats are loaded with a 25 tonne maximum.", encoding="utf-8")
    (root / "notes.csv").write_text("ignored", encoding="utf-8")
    return root


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Air Cargo Rates .docx", Category.AIR_CARGO),
        ("Barley.docx", Category.BARLEY),
        ("Chickpeas.docx", Category.CHICKPEAS),
        ("Green_Lentils.docx", Category.GREEN_LENTILS),
        ("Red_Lentils.docx", Category.RED_LENTILS),
        ("OOG Cargo Transport Services.docx", Category.OOG_CARGO),
        ("Rail Logistics Services.docx", Category.RAIL_LOGISTICS),
        ("Peas.docx", Category.PEAS),
        ("Company Overview.docx", Category.GENERAL),
    ],
)
def test_category_from_file_name(name, expected):
    assert ingest.category_for(name) == expected


def test_read_docx_includes_tables(knowledge_dir):
    text = ingest.read_docx(knowledge_dir / "Barley.docx")
    assert "Transit time is 5-7 days." in text
    assert "Saskatoon - Vancouver | USD 42 per tonne" in text


def test_discover_skips_unsupported_files(knowledge_dir):
    names = [p.name for p in ingest.discover(knowledge_dir)]
    assert names == ["Barley.docx", "Green_Lentils.docx", "Oats.txt"]


def test_discover_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        ingest.discover(tmp_path / "missing")


def test_chunks_keep_source_and_category():
    doc = Document(page_content=" ".join(f"word{i}" for i in range(400)), metadata={"source": "Oats.docx", "category": "Oats"})
    chunks = ingest.split_documents([doc], chunk_size=200, chunk_overlap=40)
    assert len(chunks) > 1
    assert all(len(c.page_content) <= 200 for c in chunks)
    assert {(c.metadata["source"], c.metadata["category"]) for c in chunks} == {("Oats.docx", "Oats")}
    assert [c.metadata["chunk"] for c in chunks] == list(range(len(chunks)))


async def test_ingested_store_is_retrievable_by_category(knowledge_dir, tmp_path):
    embeddings = DeterministicFakeEmbedding(size=64)
    output = tmp_path / "out" / "vector_store.json"
    assert await ingest.build_vector_store(knowledge_dir, embeddings, output) == 3
    assert output.exists()

    store = InMemoryVectorStore.load(str(output), embeddings)
    retriever = DocumentRetriever(VectorStoreSearch(store), min_filtered=1)
    docs = await retriever.retrieve("What is the barley rail rate?", Category.BARLEY)
    assert [(d.source, d.category) for d in docs] == [("Barley.docx", "Barley")]
    assert "USD 42 per tonne" in docs[0].content


class TestCommandLine:
    def test_writes_vector_store(self, knowledge_dir, tmp_path, monkeypatch):
        monkeypatch.setattr(ingest.settings, "dev_no_llm", True)
        output = tmp_path / "store.json"
        assert ingest.main([str(knowledge_dir), "--output", str(output)]) == 0
        assert output.exists()

    def test_missing_directory_fails(self, tmp_path, monkeypatch):
        monkeypatch.setattr(ingest.settings, "dev_no_llm", True)
        assert ingest.main([str(tmp_path / "missing"), "--output", str(tmp_path / "s.json")]) == 1
