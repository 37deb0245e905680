from __future__ import annotations

import io

import pytest
from PyPDF2 import PdfReader

from rapportini import documents
from rapportini.documents import (
    EXTRAORDINARY,
    SUMMARY,
    Branding,
    compose_document,
    compose_documents,
    document_file_name,
)
from rapportini.errors import RenderingFailure, UnknownDocumentKind


def _page_count(content: bytes) -> int:
    return len(PdfReader(io.BytesIO(content)).pages)


def test_ordinary_day_produces_summary_only(make_record, sample_day):
    docs = compose_documents([make_record(), make_record()], sample_day, "Mario Rossi")

    assert [doc.kind for doc in docs] == [SUMMARY]
    assert docs[0].file_name == "Rapportino_Mario_Rossi_2024-01-01.pdf"
    assert docs[0].media_type == "application/pdf"
    assert _page_count(docs[0].content) == 1


def test_extraordinary_record_adds_second_document(make_record, sample_day):
    records = [make_record(), make_record(work_type="extraordinary", intervention_hours=4)]

    docs = compose_documents(records, sample_day, "Mario  Rossi")

    assert [doc.kind for doc in docs] == [SUMMARY, EXTRAORDINARY]
    assert docs[1].file_name == "Straordinari_Mario_Rossi_2024-01-01.pdf"
    assert all(_page_count(doc.content) == 1 for doc in docs)


def test_empty_day_still_renders_summary(sample_day):
    docs = compose_documents([], sample_day, "Mario Rossi")

    assert len(docs) == 1
    assert docs[0].kind == SUMMARY
    assert _page_count(docs[0].content) == 1


def test_rendering_is_deterministic(make_record, sample_day):
    records = [make_record(), make_record(work_type="on_call", travel_hours=1.5)]

    first = compose_documents(records, sample_day, "Mario Rossi")
    second = compose_documents(records, sample_day, "Mario Rossi")

    assert [doc.content for doc in first] == [doc.content for doc in second]


def test_branding_changes_output(make_record, sample_day):
    records = [make_record()]

    default = compose_documents(records, sample_day, "Mario Rossi")[0]
    custom = compose_documents(records, sample_day, "Mario Rossi", Branding(name="ACME", tagline="SERVICE"))[0]

    assert default.content != custom.content


def test_many_records_stay_on_one_page(make_record, sample_day):
    records = [make_record(description="Manutenzione programmata " * 6) for _ in range(60)]
    records.append(make_record(work_type="extraordinary", description="Intervento straordinario " * 200))

    docs = compose_documents(records, sample_day, "Mario Rossi")

    assert len(docs) == 2
    assert all(_page_count(doc.content) == 1 for doc in docs)


def test_compose_single_document(make_record, sample_day):
    records = [make_record(work_type="extraordinary")]

    document = compose_document(records, sample_day, "Mario Rossi", EXTRAORDINARY)

    assert document.kind == EXTRAORDINARY
    with pytest.raises(UnknownDocumentKind):
        compose_document([make_record()], sample_day, "Mario Rossi", EXTRAORDINARY)
    with pytest.raises(UnknownDocumentKind):
        compose_document(records, sample_day, "Mario Rossi", "invoice")


def test_document_file_name_rejects_unknown_kind(sample_day):
    with pytest.raises(UnknownDocumentKind):
        document_file_name("invoice", "Mario", sample_day)


def test_backend_error_is_wrapped(monkeypatch, make_record, sample_day):
    def broken(sheet, branding):
        raise ValueError("backend exploded")

    monkeypatch.setattr(documents, "render_extraordinary", broken)

    with pytest.raises(RenderingFailure) as excinfo:
        compose_documents([make_record(work_type="extraordinary")], sample_day, "Mario Rossi")

    assert excinfo.value.kind == EXTRAORDINARY
    assert excinfo.value.day == sample_day
    assert isinstance(excinfo.value.cause, ValueError)


def test_extraordinary_scenario_text_in_pdfs(make_record, sample_day):
    record = make_record(work_type="extraordinary", location="Site B", description="fix pump", intervention_hours=4)

    summary, extraordinary = compose_documents([record], sample_day, "Mario Rossi")

    summary_text = PdfReader(io.BytesIO(summary.content)).pages[0].extract_text()
    extraordinary_text = PdfReader(io.BytesIO(extraordinary.content)).pages[0].extract_text()
    assert "4.0" in summary_text
    assert "Vedi foglio" in summary_text
    assert "[Site B] fix pump" in extraordinary_text


def test_failed_extraordinary_render_drops_the_whole_day(monkeypatch, make_record, sample_day):
    def broken(sheet, branding):
        raise ValueError("backend exploded")

    monkeypatch.setattr(documents, "render_extraordinary", broken)
    summary_calls = []
    original_summary = documents.render_summary

    def counting_summary(sheet, branding):
        summary_calls.append(sheet.day)
        return original_summary(sheet, branding)

    monkeypatch.setattr(documents, "render_summary", counting_summary)

    with pytest.raises(RenderingFailure):
        compose_documents([make_record(), make_record(work_type="extraordinary")], sample_day, "Mario Rossi")

    assert summary_calls == [sample_day]
