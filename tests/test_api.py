"""End-to-end tests for the /api/predict endpoint with a stubbed LLM."""

import dataclasses
import os

import pytest
from fastapi.testclient import TestClient

import main
from conftest import data_line, make_vcf
from prompts.prompt_composer import load_template
from services.report_client import ConfigurationError, ReportClient, ReportGenerationError

TEMPLATE = "Patient ${age} ${gender}\n${variantSummary}\nGenes: ${geneList}\n${detailedVariantInfo}"


class StubReportClient(ReportClient):
    provider = "stub"
    model = "stub-model"

    def __init__(self, reply='```json\n{"overallRisk": "moderate"}\n```', error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def stub_llm():
    return StubReportClient()


@pytest.fixture
def client(stub_llm):
    main.app.dependency_overrides[main.report_client_provider] = lambda: (lambda: stub_llm)
    main.app.dependency_overrides[main.prompt_template_provider] = lambda: (lambda: TEMPLATE)
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def temp_paths(monkeypatch):
    created = []
    original = main.save_temp_upload

    def recording(content, filename):
        path = original(content, filename)
        created.append(path)
        return path

    monkeypatch.setattr(main, "save_temp_upload", recording)
    return created


def upload(client, content, filename="sample.vcf", content_type="text/plain"):
    return client.post("/api/predict", files={"file": (filename, content, content_type)})


class TestPredict:
    def test_successful_report(self, client, stub_llm, minimal_vcf):
        response = upload(client, minimal_vcf.encode())

        assert response.status_code == 200
        body = response.json()
        assert body["aiAnalysis"] == {"overallRisk": "moderate"}
        assert body["identifiedGenesForPrompt"] == ["BRCA1"]
        assert body["processedVariantsInput"] == [{
            "representation": "chr1:100 A>T",
            "gene": "BRCA1",
            "consequence": "missense_variant",
            "impact": "MODERATE",
            "qual": 50.0,
        }]

        prompt = stub_llm.prompts[0]
        assert prompt.startswith("Patient 25 female\n")
        assert "chr1:100 A>T (Gene: BRCA1, Effect: missense_variant)" in prompt
        assert "- chr1:100 A>T, Gene: BRCA1, Effect: missense_variant" in prompt

    def test_missing_file(self, client):
        response = client.post("/api/predict", files={"other": ("a.txt", b"x", "text/plain")})

        assert response.status_code == 400
        assert response.json() == {"error": "No file uploaded"}

    def test_rejects_other_file_types(self, client):
        response = upload(client, b"%PDF-1.4", filename="report.pdf", content_type="application/pdf")

        assert response.status_code == 400
        assert response.json() == {"error": "Only .vcf or .txt files allowed"}

    def test_accepts_vcf_extension_with_any_mime(self, client, minimal_vcf):
        response = upload(client, minimal_vcf.encode(), content_type="application/octet-stream")

        assert response.status_code == 200

    def test_empty_file(self, client, stub_llm):
        response = upload(client, b"")

        assert response.status_code == 400
        assert response.json() == {"error": "Empty VCF"}
        assert stub_llm.prompts == []

    def test_no_variants_pass(self, client):
        vcf = make_vcf([data_line("ANN=BRCA1|missense_variant|MODERATE", qual="5")])

        response = upload(client, vcf.encode())

        assert response.status_code == 400
        assert response.json() == {"error": "No variants passed filters"}

    def test_file_too_large(self, client, monkeypatch, minimal_vcf):
        monkeypatch.setattr(main, "settings", dataclasses.replace(main.settings, max_upload_bytes=16))

        response = upload(client, minimal_vcf.encode())

        assert response.status_code == 413
        assert response.json() == {"error": "File too large"}

    def test_llm_failure_returns_500(self, client, stub_llm, minimal_vcf):
        stub_llm.error = ReportGenerationError("Gemini request failed: quota exceeded")

        response = upload(client, minimal_vcf.encode())

        assert response.status_code == 500
        assert "quota exceeded" in response.json()["error"]

    def test_unparsable_llm_reply_returns_500(self, client, stub_llm, minimal_vcf):
        stub_llm.reply = "I cannot produce JSON today."

        response = upload(client, minimal_vcf.encode())

        assert response.status_code == 500
        assert "error" in response.json()

    def test_unconfigured_client_returns_500(self, client, minimal_vcf):
        def missing_key():
            raise ConfigurationError("GEMINI_API_KEY missing")

        main.app.dependency_overrides[main.report_client_provider] = lambda: missing_key

        response = upload(client, minimal_vcf.encode())

        assert response.status_code == 500
        assert response.json() == {"error": "GEMINI_API_KEY missing"}


class TestTempFileCleanup:
    def test_removed_after_success(self, client, temp_paths, minimal_vcf):
        upload(client, minimal_vcf.encode())

        assert len(temp_paths) == 1
        assert not os.path.exists(temp_paths[0])

    def test_removed_after_failure(self, client, stub_llm, temp_paths, minimal_vcf):
        stub_llm.error = ReportGenerationError("boom")

        upload(client, minimal_vcf.encode())

        assert not os.path.exists(temp_paths[0])


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestCollaboratorsResolvedAfterFilters:
    @pytest.fixture
    def unconfigured(self, client):
        def missing_key():
            raise ConfigurationError("GEMINI_API_KEY missing")

        main.app.dependency_overrides[main.report_client_provider] = lambda: missing_key
        return client

    def test_missing_file_still_400(self, unconfigured):
        response = unconfigured.post("/api/predict", files={"other": ("a.txt", b"x", "text/plain")})

        assert response.status_code == 400
        assert response.json() == {"error": "No file uploaded"}

    def test_empty_vcf_still_400(self, unconfigured):
        response = upload(unconfigured, b"", filename="a.vcf")

        assert response.status_code == 400
        assert response.json() == {"error": "Empty VCF"}

    def test_filtered_out_vcf_still_400(self, unconfigured):
        vcf = make_vcf([data_line("ANN=BRCA1|missense_variant|MODERATE", filter_status="LowQual")])

        response = upload(unconfigured, vcf.encode())

        assert response.status_code == 400
        assert response.json() == {"error": "No variants passed filters"}

    def test_unreadable_template_after_filters_is_500(self, client, minimal_vcf, tmp_path):
        main.app.dependency_overrides[main.prompt_template_provider] = \
            lambda: (lambda: load_template(None, tmp_path / "absent.txt"))

        response = upload(client, minimal_vcf.encode())

        assert response.status_code == 500
        assert "absent.txt" in response.json()["error"]
