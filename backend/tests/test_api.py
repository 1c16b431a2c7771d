"""
API tests against the FastAPI app with an in-memory database.

LLM calls and portal traffic are patched; everything else runs for real.
"""

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from agents.prompts.llm import LLMResult
from exceptions import IngestionError, LLMGatewayError
from schemas.ingestion import IngestionEnvelope
from utils.sse_parser import parse_sse_stream

ANALYSIS_REPLY = json.dumps({
    "insights": [
        {
            "type": "metric_extraction",
            "category": "capital",
            "title": "Key ratios",
            "content": "Tier 1 capital ratio 14.8%, total assets $460B.",
            "confidence": 0.9,
            "metrics": {"tier1_capital_ratio": 14.8, "total_assets": 4.6e11, "roa": 0.92},
        },
        {
            "type": "risk_assessment",
            "category": "credit",
            "title": "Commercial real estate",
            "content": "CRE concentration increased to 310% of capital, above supervisory guidance.",
            "confidence": 0.8,
        },
    ]
})


def llm_returns(text=ANALYSIS_REPLY, **kwargs):
    return patch("services.analysis_service.call_llm", new=AsyncMock(return_value=LLMResult(data=text, **kwargs)))


def llm_fails(status):
    return patch("services.analysis_service.call_llm", new=AsyncMock(return_value=LLMResult(error="no", status_code=status)))


# ═══════════════════════════════════════════════════════════════════════════
# Service root
# ═══════════════════════════════════════════════════════════════════════════


async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


# ═══════════════════════════════════════════════════════════════════════════
# Reports
# ═══════════════════════════════════════════════════════════════════════════


class TestReports:

    async def test_crud_lifecycle(self, client):
        resp = await client.post("/api/reports", json={
            "name": "Call Report Q1",
            "report_type": "call_report",
            "reporting_period": "Q1 2025",
            "raw_content": "RC-R Tier 1 ratio 14.8",
        })
        assert resp.status_code == 201, resp.text
        report = resp.json()
        assert report["status"] == "pending"
        assert report["source"] == "upload"

        resp = await client.patch(f"/api/reports/{report['id']}", json={"institution_name": "Mizuho Americas"})
        assert resp.status_code == 200
        assert resp.json()["institution_name"] == "Mizuho Americas"

        resp = await client.get(f"/api/reports/{report['id']}")
        assert resp.json()["raw_content"] == "RC-R Tier 1 ratio 14.8"

        resp = await client.delete(f"/api/reports/{report['id']}")
        assert resp.json() == {"ok": True}

        resp = await client.get(f"/api/reports/{report['id']}")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": f"Report {report['id']} not found"}

    async def test_list_dedupes_logical_duplicates(self, client, make_report):
        first = await make_report(name="Call Report Q1", minutes=0)
        second = await make_report(name="Call Report Q1", minutes=5)
        other = await make_report(name="UBPR Q1", report_type="ubpr", minutes=1)

        resp = await client.get("/api/reports")
        assert resp.json()["total"] == 3

        resp = await client.get("/api/reports", params={"dedupe": True})
        body = resp.json()
        assert body["deduplicated"] is True
        assert [r["id"] for r in body["reports"]] == [second.id, other.id]
        assert body["reports"][0]["has_older_version"] is True
        assert first.id not in [r["id"] for r in body["reports"]]

    async def test_list_filters_by_status(self, client, make_report):
        await make_report(status="analyzed")
        pending = await make_report(name="Other", status="pending")

        resp = await client.get("/api/reports", params={"status": "pending"})

        assert [r["id"] for r in resp.json()["reports"]] == [pending.id]

    async def test_upload_without_analysis(self, client, tmp_path, monkeypatch):
        from config.settings import settings
        monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))

        resp = await client.post(
            "/api/reports/upload",
            files={"file": ("UBPR_2025-03-31.csv", b"metric,value\ntier1,14.8\n", "text/csv")},
            data={"report_type": "ubpr", "institution_name": "Mizuho Americas", "analyze": "false"},
        )

        assert resp.status_code == 201, resp.text
        report = resp.json()
        assert report["status"] == "pending"
        assert report["report_type"] == "ubpr"
        assert report["raw_content"] == "metric,value\ntier1,14.8\n"
        stored = list(tmp_path.iterdir())
        assert len(stored) == 1
        assert stored[0].name.endswith("_UBPR_2025-03-31.csv")

    async def test_upload_runs_analysis(self, client, tmp_path, monkeypatch):
        from config.settings import settings
        monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))

        with llm_returns():
            resp = await client.post(
                "/api/reports/upload",
                files={"file": ("call.txt", b"Schedule RC-R ...", "text/plain")},
            )

        report = resp.json()
        assert report["status"] == "analyzed"

        resp = await client.get("/api/insights", params={"report_id": report["id"]})
        insights = resp.json()["insights"]
        assert {i["insight_type"] for i in insights} == {"metric_extraction", "risk_assessment"}
        assert all(i["status"] == "pending" for i in insights)

    async def test_upload_analysis_failure_marks_error(self, client, tmp_path, monkeypatch):
        from config.settings import settings
        monkeypatch.setattr(settings, "UPLOAD_DIR", str(tmp_path))

        with llm_fails(429):
            resp = await client.post(
                "/api/reports/upload",
                files={"file": ("call.pdf", b"%PDF-1.4", "application/pdf")},
            )

        report = resp.json()
        assert resp.status_code == 201
        assert report["status"] == "error"
        assert report["error_message"] == LLMGatewayError.RATE_LIMITED
        assert report["raw_content"] is None

    async def test_reanalyze_passes_gateway_status(self, client, make_report):
        report = await make_report(status="analyzed")

        with llm_fails(402):
            resp = await client.post(f"/api/reports/{report.id}/analyze")

        assert resp.status_code == 402
        assert resp.json() == {"success": False, "error": LLMGatewayError.CREDITS_EXHAUSTED}

        resp = await client.get(f"/api/reports/{report.id}")
        assert resp.json()["status"] == "error"

    async def test_reanalyze_without_insights_marks_analyzed(self, client, make_report):
        report = await make_report(status="error")

        with llm_returns(text='{"insights": []}'):
            resp = await client.post(f"/api/reports/{report.id}/analyze")

        assert resp.status_code == 200
        assert resp.json()["insights"] == []
        resp = await client.get(f"/api/reports/{report.id}")
        assert resp.json()["status"] == "analyzed"
        assert resp.json()["error_message"] is None


# ═══════════════════════════════════════════════════════════════════════════
# Insights
# ═══════════════════════════════════════════════════════════════════════════


class TestInsights:

    async def test_bulk_save_and_review(self, client, make_report):
        report = await make_report(status="processing")

        resp = await client.post("/api/insights/bulk", json={
            "report_id": report.id,
            "insights": [
                {"type": "summary", "title": "Overview", "content": "Net income rose 8% year over year on higher fees."},
                {"type": "summary", "title": "Placeholder", "content": "[Summary pending]"},
            ],
        })
        assert resp.status_code == 201, resp.text
        saved = resp.json()
        assert len(saved) == 2

        resp = await client.get(f"/api/reports/{report.id}")
        assert resp.json()["status"] == "analyzed"

        resp = await client.get("/api/insights", params={"report_id": report.id, "substantive_only": True})
        body = resp.json()
        assert body["total"] == 1
        assert body["filtered_count"] == 1

        resp = await client.patch(f"/api/insights/{saved[0]['id']}/status", json={"status": "accepted"})
        assert resp.json()["status"] == "accepted"

        resp = await client.get("/api/insights", params={"status": "accepted"})
        assert [i["id"] for i in resp.json()["insights"]] == [saved[0]["id"]]

        resp = await client.delete(f"/api/insights/{saved[1]['id']}")
        assert resp.json() == {"ok": True}

    async def test_bulk_save_unknown_report(self, client):
        resp = await client.post("/api/insights/bulk", json={"report_id": "missing", "insights": []})
        assert resp.status_code == 404

    async def test_deleting_report_removes_insights(self, client, make_report):
        report = await make_report(metrics={"roa": 1.0})

        await client.delete(f"/api/reports/{report.id}")

        resp = await client.get("/api/insights", params={"report_id": report.id})
        assert resp.json()["total"] == 0


# ═══════════════════════════════════════════════════════════════════════════
# API connections
# ═══════════════════════════════════════════════════════════════════════════


class FakeIngestion:
    """Stands in for IngestionService.fetch_api_data."""

    def __init__(self, envelope=None, error=None):
        self.envelope = envelope
        self.error = error
        self.requests = []

    async def fetch_api_data(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return self.envelope


@pytest.fixture
def use_ingestion():
    """Point the connection service at a fake ingestion adapter."""
    from database import get_async_db
    from fastapi import Depends
    from main import app
    from services.api_connection_service import ApiConnectionService, get_api_connection_service

    def _use(fake):
        async def override(db=Depends(get_async_db)):
            return ApiConnectionService(db, ingestion=fake)
        app.dependency_overrides[get_api_connection_service] = override
        return fake

    return _use


class TestApiConnections:

    async def test_create_defaults_and_hides_credentials(self, client):
        resp = await client.post("/api/connections", json={"portal": "fdic", "api_key": "secret", "rssd_id": "623806"})

        assert resp.status_code == 201, resp.text
        connection = resp.json()
        assert connection["name"] == "FDIC BankFind Connection"
        assert connection["base_url"] == "https://banks.data.fdic.gov/api"
        assert "api_key" not in connection
        assert "credentials_encrypted" not in connection

        resp = await client.get("/api/connections")
        assert [c["id"] for c in resp.json()] == [connection["id"]]

        resp = await client.delete(f"/api/connections/{connection['id']}")
        assert resp.json() == {"ok": True}

    async def test_custom_requires_base_url(self, client):
        resp = await client.post("/api/connections", json={"portal": "custom"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Base URL required for custom API"

    async def test_sync_success_creates_analyzed_report(self, client, use_ingestion):
        fake = use_ingestion(FakeIngestion(IngestionEnvelope(success=True, markdown="## FDIC BankFind Financials", portal="ffiec")))
        resp = await client.post("/api/connections", json={"portal": "ffiec", "rssd_id": "623806", "api_key": "k"})
        connection = resp.json()

        with llm_returns():
            resp = await client.post(f"/api/connections/{connection['id']}/sync")

        result = resp.json()
        assert result["success"] is True
        assert fake.requests[0].api_key == "k"
        assert fake.requests[0].rssd_id == "623806"

        resp = await client.get(f"/api/reports/{result['report_id']}")
        report = resp.json()
        assert report["name"].startswith("FFIEC CDR Connection - ")
        assert report["report_type"] == "call_report"
        assert report["source"] == "ffiec"
        assert report["raw_content"] == "## FDIC BankFind Financials"
        assert report["status"] == "analyzed"

        resp = await client.get("/api/connections")
        assert resp.json()[0]["last_sync_at"] is not None

    async def test_sync_failure_records_error(self, client, use_ingestion):
        use_ingestion(FakeIngestion(error=IngestionError("API request failed: 503", status_code=503)))
        resp = await client.post("/api/connections", json={"portal": "custom", "base_url": "https://data.example.com"})
        connection = resp.json()

        resp = await client.post(f"/api/connections/{connection['id']}/sync")

        result = resp.json()
        assert result["success"] is False
        assert result["error"] == "API request failed: 503"

        resp = await client.get(f"/api/reports/{result['report_id']}")
        assert resp.json()["status"] == "error"
        assert resp.json()["error_message"] == "API request failed: 503"

        resp = await client.get("/api/connections")
        assert resp.json()[0]["status"] == "error"

    async def test_sync_malformed_json_records_error(self, client, use_ingestion):
        from services.ingestion_service import IngestionService

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"{not json", headers={"content-type": "application/json"})

        use_ingestion(IngestionService(transport=httpx.MockTransport(handler)))
        resp = await client.post("/api/connections", json={"portal": "custom", "base_url": "https://data.example.com"})
        connection = resp.json()

        resp = await client.post(f"/api/connections/{connection['id']}/sync")

        assert resp.status_code == 200
        result = resp.json()
        assert result["success"] is False
        assert result["error"].startswith("Invalid JSON response")

        resp = await client.get(f"/api/reports/{result['report_id']}")
        assert resp.json()["status"] == "error"

        resp = await client.get("/api/connections")
        assert resp.json()[0]["status"] == "error"

    async def test_sync_unknown_connection(self, client):
        resp = await client.post("/api/connections/missing/sync")
        assert resp.status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
# Ingestion and analysis endpoints
# ═══════════════════════════════════════════════════════════════════════════


class TestIngestionEndpoints:

    @pytest.fixture(autouse=True)
    def no_firecrawl(self):
        from main import app
        from services.firecrawl_service import FirecrawlService
        from services.ingestion_service import IngestionService, get_ingestion_service

        app.dependency_overrides[get_ingestion_service] = lambda: IngestionService(firecrawl=FirecrawlService(api_key=""))

    async def test_scrape_without_firecrawl_key(self, client):
        resp = await client.post("/api/ingestion/scrape-regulatory-data", json={"source": "ffiec", "rssdId": "623806"})

        assert resp.status_code == 500
        assert resp.json() == {"success": False, "error": "Firecrawl connector not configured"}

    async def test_fetch_api_data_validation(self, client):
        resp = await client.post("/api/ingestion/fetch-api-data", json={"portal": "custom"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "Base URL required for custom API"

    async def test_peer_metrics_requires_peers(self, client):
        resp = await client.post("/api/ingestion/fetch-peer-metrics", json={"peers": []})

        assert resp.status_code == 400
        assert resp.json()["error"] == "peers array is required"

    async def test_fetch_peer_metrics_camel_case(self, client):
        from main import app
        from services.fdic_service import FdicService
        from services.peer_metrics_service import PeerMetricsService, get_peer_metrics_service

        record = {"REPDTE": "20250331", "ROA": 1.21, "IDT1RWAJR": 15.1}
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"data": [{"data": record}]}))
        app.dependency_overrides[get_peer_metrics_service] = lambda: PeerMetricsService(FdicService(transport=transport))

        resp = await client.post("/api/ingestion/fetch-peer-metrics", json={"peers": [{"rssdId": "852218", "name": "JPMorgan"}]})

        body = resp.json()
        assert body["successCount"] == 1
        assert body["totalRequested"] == 1
        assert body["results"][0]["rssdId"] == "852218"
        assert body["results"][0]["metrics"]["tier1"] == 15.1

    async def test_analyze_report_endpoint(self, client):
        with llm_returns():
            resp = await client.post("/api/analysis/analyze-report", json={
                "reportId": "adhoc",
                "content": "Call report",
                "reportType": "call_report",
            })

        body = resp.json()
        assert body["success"] is True
        assert body["reportId"] == "adhoc"
        assert len(body["insights"]) == 2

    async def test_analyze_report_rate_limited(self, client):
        with llm_fails(429):
            resp = await client.post("/api/analysis/analyze-report", json={
                "reportId": "adhoc", "content": "x", "reportType": "ubpr",
            })

        assert resp.status_code == 429
        assert resp.json()["error"] == LLMGatewayError.RATE_LIMITED


# ═══════════════════════════════════════════════════════════════════════════
# Dashboard
# ═══════════════════════════════════════════════════════════════════════════


class TestDashboard:

    async def test_empty_dashboard(self, client):
        resp = await client.get("/api/dashboard/metrics")
        assert resp.json()["hasData"] is False

        resp = await client.get("/api/dashboard/balance-sheet")
        assert resp.status_code == 200
        assert resp.json() is None

        resp = await client.get("/api/dashboard/executive-insights")
        assert resp.json()["insights"] == []

    async def test_metrics_cards_and_history(self, client, make_report):
        await make_report(name="Call Report Q4", reporting_period="Q4 2024", minutes=0,
                          metrics={"tier1_capital_ratio": 14.2, "total_assets": 4.5e11})
        await make_report(name="Call Report Q1", reporting_period="Q1 2025", minutes=10,
                          metrics={"tier1_capital_ratio": 14.8, "efficiency_ratio": 64.2})

        resp = await client.get("/api/dashboard/metrics")
        body = resp.json()
        assert body["metrics"]["tier1_capital_ratio"] == 14.8
        assert body["metrics"]["total_assets"] == 4.5e11
        assert body["metricSources"]["total_assets"]["period"] == "Q4 2024"

        resp = await client.get("/api/dashboard/metric-cards")
        cards = {c["id"]: c for c in resp.json()["metrics"]}
        assert cards["tier1-capital"]["value"] == "14.8%"
        assert cards["efficiency"]["threshold"]["status"] == "warning"
        assert cards["total-assets"]["value"] == "$450.0B"

        resp = await client.get("/api/dashboard/metric-history/tier1")
        history = resp.json()
        assert [p["period"] for p in history["points"]] == ["Q4 2024", "Q1 2025"]
        assert history["isGoodChange"] is True

        resp = await client.get("/api/dashboard/balance-sheet")
        assert resp.json()["totalAssets"] == 4.5e11

    async def test_executive_insights_from_latest_report(self, client, make_report):
        await make_report(name="Old", minutes=0, insights=[{
            "insight_type": "summary", "category": "capital", "title": "Old news",
            "content": "Capital ratio at 13.1% last year.",
        }])
        await make_report(name="New", minutes=10, insights=[{
            "insight_type": "risk_assessment", "category": "credit", "title": "CRE exposure",
            "content": "CRE concentration rose to 310% of capital.",
        }])

        resp = await client.get("/api/dashboard/executive-insights")

        body = resp.json()
        assert [i["title"] for i in body["insights"]] == ["CRE exposure"]
        assert body["insights"][0]["category"] == "risk"
        assert body["insights"][0]["metric"] == "310%"

    async def test_peer_comparison_uses_report_metrics(self, client, make_report):
        await make_report(metrics={"tier1_capital_ratio": 16.0})

        resp = await client.post("/api/dashboard/peer-comparison", json={"peerIds": ["jpmorgan", "bofa"]})

        body = resp.json()
        assert body["subjectSource"] == "reports"
        tier1 = next(m for m in body["metrics"] if m["id"] == "tier1-peer")
        assert tier1["subjectValue"] == "16%"
        assert tier1["peerPercentile"] == 100

    async def test_peer_comparison_reference(self, client):
        resp = await client.post("/api/dashboard/peer-comparison", json={"useReportMetrics": False})

        body = resp.json()
        assert body["subjectSource"] == "reference"
        assert len(body["metrics"]) == 8
        assert len(body["metrics"][0]["peerValues"]) == 4


# ═══════════════════════════════════════════════════════════════════════════
# Data chat
# ═══════════════════════════════════════════════════════════════════════════


def deltas(*parts):
    async def gen():
        for part in parts:
            yield part
    return gen()


class TestChatStream:

    async def test_streams_chunks_and_persists_turns(self, client, make_report):
        report = await make_report(metrics={"roa": 0.92})
        stream = AsyncMock(return_value=deltas("ROA is ", "0.92%."))

        with patch("services.chat_stream_service.open_chat_stream", new=stream):
            resp = await client.post("/api/chat/stream", json={
                "messages": [{"role": "user", "content": "What is our ROA?"}],
                "reportIds": [report.id],
            })

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert "data: [DONE]" in resp.text
        assert "".join(parse_sse_stream(resp.text.splitlines())) == "ROA is 0.92%."

        system_prompt = stream.await_args.args[0]
        assert "Call Report Q1" in system_prompt

        resp = await client.get("/api/chat/messages")
        messages = resp.json()
        assert [m["role"] for m in messages] == ["user", "assistant"]
        assert messages[1]["content"] == "ROA is 0.92%."
        assert messages[1]["metadata"] == {"chunks": 2}
        assert messages[0]["report_ids"] == [report.id]

    async def test_gateway_rejection_is_json(self, client):
        stream = AsyncMock(side_effect=LLMGatewayError(LLMGatewayError.RATE_LIMITED, status_code=429))

        with patch("services.chat_stream_service.open_chat_stream", new=stream):
            resp = await client.post("/api/chat/stream", json={"messages": [{"role": "user", "content": "hi"}]})

        assert resp.status_code == 429
        assert resp.json() == {"success": False, "error": LLMGatewayError.RATE_LIMITED}

        resp = await client.get("/api/chat/messages")
        assert resp.json() == []

    async def test_requires_messages(self, client):
        resp = await client.post("/api/chat/stream", json={"messages": []})
        assert resp.status_code == 422
