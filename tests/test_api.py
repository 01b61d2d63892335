"""
HTTP contract tests. The app runs in-process over ASGITransport with the
session factory, settings and LLM swapped through dependency overrides.
"""

import asyncio

from app.agents.orchestrator import _background_runs


async def _submit(client, text="Nothing Phone 2", owner="user-1", run=False, **extra):
    response = await client.post(
        "/api/queries",
        json={"query_text": text, "query_type": "product", "owner_id": owner, "run": run, **extra},
    )
    assert response.status_code == 201, response.text
    return response.json()


# ============================================================================
# QUERIES
# ============================================================================

class TestQueries:
    async def test_health(self, client):
        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["providers"]["generative"] is False

    async def test_submit_creates_pending_query(self, client):
        body = await _submit(client)

        assert body["status"] == "pending"
        assert body["query_text"] == "Nothing Phone 2"
        assert body["owner_id"] == "user-1"

    async def test_submit_accepts_camel_case(self, client):
        response = await client.post(
            "/api/queries",
            json={"queryText": "Acme Analytics", "queryType": "company", "userId": "user-9", "run": False},
        )
        assert response.status_code == 201
        assert response.json()["query_type"] == "company"

    async def test_submit_validation(self, client):
        blank = await client.post("/api/queries", json={"query_text": "   ", "owner_id": "user-1"})
        bad_type = await client.post(
            "/api/queries", json={"query_text": "X", "query_type": "service", "owner_id": "user-1"}
        )
        no_owner = await client.post("/api/queries", json={"query_text": "X"})

        assert blank.status_code == 422
        assert bad_type.status_code == 422
        assert no_owner.status_code == 422

    async def test_submit_with_run_completes_in_background(self, client):
        body = await _submit(client, run=True)
        await asyncio.gather(*list(_background_runs))

        response = await client.get(f"/api/queries/{body['id']}")
        assert response.json()["status"] == "completed"

    async def test_list_is_per_owner(self, client):
        await _submit(client, "First", owner="user-1")
        await _submit(client, "Second", owner="user-1")
        await _submit(client, "Other", owner="user-2")

        response = await client.get("/api/queries", params={"owner_id": "user-1"})

        assert response.status_code == 200
        assert {q["query_text"] for q in response.json()} == {"First", "Second"}

    async def test_get_unknown_query(self, client):
        response = await client.get("/api/queries/missing")
        assert response.status_code == 404

    async def test_run_and_results(self, client):
        query = await _submit(client)

        run = await client.post(f"/api/queries/{query['id']}/run")
        results = await client.get(f"/api/queries/{query['id']}/results")

        assert run.status_code == 200
        assert run.json() == {"success": True, "failedAgents": 0, "totalAgents": 3, "skipped": False}

        body = results.json()
        assert body["query"]["status"] == "completed"
        assert len(body["sentiments"]) == 3
        assert len(body["competitors"]) == 5
        assert body["trends"]
        assert body["report"]["title"] == "Market Analysis Report: Nothing Phone 2"
        assert all(s["provenance"] == "placeholder" for s in body["sentiments"])
        assert isinstance(body["competitors"][0]["price"], float)

    async def test_run_unknown_query(self, client):
        response = await client.post("/api/queries/missing/run")
        assert response.status_code == 404

    async def test_delete(self, client):
        query = await _submit(client)
        await client.post(f"/api/queries/{query['id']}/run")

        deleted = await client.delete(f"/api/queries/{query['id']}")
        again = await client.get(f"/api/queries/{query['id']}/results")

        assert deleted.status_code == 204
        assert again.status_code == 404


# ============================================================================
# AGENTS
# ============================================================================

class TestAgents:
    async def test_run_single_agent(self, client):
        query = await _submit(client)

        response = await client.post(
            "/api/agents/sentiment",
            json={"queryId": query["id"], "queryText": "Nothing Phone 2", "queryType": "product"},
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "count": 3, "provenance": "placeholder"}

    async def test_unknown_query_returns_error_body(self, client):
        response = await client.post(
            "/api/agents/competitor", json={"queryId": "missing", "queryText": "Nothing Phone 2"}
        )

        assert response.status_code == 404
        assert "error" in response.json()

    async def test_unknown_agent_kind(self, client):
        response = await client.post("/api/agents/pricing", json={"queryId": "q", "queryText": "X"})
        assert response.status_code == 422

    async def test_insights(self, client):
        query = await _submit(client)

        response = await client.post(
            "/api/agents/insights", json={"queryId": query["id"], "queryText": "Nothing Phone 2"}
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "insights": 2, "recommendations": 3}


# ============================================================================
# REPORTS, KNOWLEDGE, SCENARIOS, ASSISTANT
# ============================================================================

class TestReports:
    async def test_render_get_and_serve(self, client):
        query = await _submit(client)
        await client.post("/api/agents/insights", json={"queryId": query["id"], "queryText": "Nothing Phone 2"})

        rendered = await client.post(f"/api/reports/{query['id']}/render")
        report = await client.get(f"/api/reports/{query['id']}")

        assert rendered.status_code == 200
        document_url = rendered.json()["documentUrl"]
        assert report.json()["document_url"] == document_url

        served = await client.get(document_url, params={"download": "true"})
        assert served.status_code == 200
        assert served.headers["content-type"].startswith("text/html")
        assert served.headers["content-disposition"].startswith("attachment")

    async def test_report_not_generated_yet(self, client):
        query = await _submit(client)
        response = await client.get(f"/api/reports/{query['id']}")
        assert response.status_code == 404

    async def test_missing_file(self, client):
        response = await client.get("/api/reports/files/nope.html")
        assert response.status_code == 404


class TestKnowledge:
    async def test_process_and_search(self, client):
        query = await _submit(client)
        await client.post("/api/agents/competitor", json={"queryId": query["id"], "queryText": "Nothing Phone 2"})

        processed = await client.post(f"/api/knowledge/{query['id']}/process")
        search = await client.post(
            "/api/knowledge/search", json={"query": "Samsung Galaxy", "queryId": query["id"]}
        )

        assert processed.json()["chunks"] == 5
        assert processed.json()["embedded"] == 0
        body = search.json()
        assert body["method"] == "keyword"
        assert body["results"][0]["queryId"] == query["id"]
        assert "Samsung Galaxy" in body["results"][0]["content"]

    async def test_process_unknown_query(self, client):
        response = await client.post("/api/knowledge/missing/process")
        assert response.status_code == 404


class TestScenarios:
    async def test_price_scenario(self, client):
        query = await _submit(client)
        await client.post("/api/agents/competitor", json={"queryId": query["id"], "queryText": "Nothing Phone 2"})

        response = await client.post(
            f"/api/queries/{query['id']}/scenarios/price", json={"proposedPrice": 500, "baselinePrice": 400}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["priceChangePct"] == 25.0
        assert body["competitorResponse"] == "Competitors may launch promotional campaigns"

    async def test_validation_and_errors(self, client):
        query = await _submit(client)

        zero = await client.post(f"/api/queries/{query['id']}/scenarios/price", json={"proposedPrice": 0})
        no_baseline = await client.post(f"/api/queries/{query['id']}/scenarios/price", json={"proposedPrice": 10})
        unknown = await client.post("/api/queries/missing/scenarios/price", json={"proposedPrice": 10})

        assert zero.status_code == 422
        assert no_baseline.status_code == 400
        assert unknown.status_code == 404


class TestAssistant:
    async def test_chat_fallback(self, client):
        response = await client.post(
            "/api/assistant/chat", json={"message": "Show me a competitor comparison", "userId": "user-1"}
        )

        assert response.status_code == 200
        assert response.json()["action"] == "show_comparison"
        assert response.json()["response"]

    async def test_chat_requires_message_and_user(self, client):
        no_message = await client.post("/api/assistant/chat", json={"userId": "user-1"})
        no_user = await client.post("/api/assistant/chat", json={"message": "Hi"})

        assert no_message.status_code == 400
        assert no_user.status_code == 400

    async def test_chat_unknown_query(self, client):
        response = await client.post(
            "/api/assistant/chat", json={"message": "Hi", "userId": "user-1", "queryId": "missing"}
        )
        assert response.status_code == 404
