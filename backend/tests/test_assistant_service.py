# Overview: Pytest coverage for the assistant collaborator boundary (httpx mocked).

import json

import httpx
import pytest

from shopledger.services import assistant_service


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def api_key(app, monkeypatch):
    monkeypatch.setitem(app.config, "ASSISTANT_API_KEY", "test-key")
    return "test-key"


class TestChat:
    def test_returns_collaborator_answer(self, utc_shop, make_product, api_key):
        make_product("Cola", stock=3)
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            answer = {"message": "Restock Cola.", "suggestions": ["Order 20 Cola"], "data": {"sku": 1}}
            return httpx.Response(200, json=_completion(json.dumps(answer)))

        with _client(handler) as client:
            result = assistant_service.process_chat_query("What should I reorder?", client=client)

        assert result == {"message": "Restock Cola.", "suggestions": ["Order 20 Cola"], "data": {"sku": 1}}
        assert seen["auth"] == "Bearer test-key"
        system, user = seen["body"]["messages"]
        assert user == {"role": "user", "content": "What should I reorder?"}
        assert "Cola" in system["content"]

    def test_missing_fields_get_defaults(self, utc_shop, api_key):
        def handler(request):
            return httpx.Response(200, json=_completion("{}"))

        with _client(handler) as client:
            result = assistant_service.process_chat_query("hi", client=client)

        assert result["message"] == "I'm here to help with your business insights!"
        assert result["suggestions"] == []
        assert result["data"] is None

    def test_missing_api_key_falls_back_without_request(self, utc_shop, app, monkeypatch):
        monkeypatch.setitem(app.config, "ASSISTANT_API_KEY", None)

        def handler(request):
            raise AssertionError("no request expected")

        with _client(handler) as client:
            result = assistant_service.process_chat_query("hi", client=client)

        assert result == assistant_service.CHAT_FALLBACK

    @pytest.mark.parametrize("response", [
        httpx.Response(500, json={"error": "boom"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"choices": []}),
        httpx.Response(200, json=_completion("not json either")),
        httpx.Response(200, json=_completion("[1, 2, 3]")),
    ])
    def test_bad_responses_fall_back(self, utc_shop, api_key, response):
        with _client(lambda request: response) as client:
            result = assistant_service.process_chat_query("hi", client=client)
        assert result == assistant_service.CHAT_FALLBACK

    def test_network_error_falls_back_and_logs(self, utc_shop, api_key, caplog):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with _client(handler) as client:
            result = assistant_service.process_chat_query("hi", client=client)

        assert result == assistant_service.CHAT_FALLBACK
        assert "Assistant chat unavailable" in caplog.text


class TestInventoryInsights:
    def test_returns_insights(self, utc_shop, make_product, api_key):
        make_product("Chips", stock=1)

        def handler(request):
            prompt = json.loads(request.content)["messages"][0]["content"]
            assert "Chips" in prompt
            return httpx.Response(200, json=_completion(json.dumps({
                "message": "Chips are running low.",
                "suggestions": "Reorder chips",
            })))

        with _client(handler) as client:
            result = assistant_service.generate_inventory_insights(client=client)

        assert result["message"] == "Chips are running low."
        assert result["suggestions"] == ["Reorder chips"]

    def test_failure_falls_back(self, utc_shop, api_key):
        with _client(lambda request: httpx.Response(503)) as client:
            result = assistant_service.generate_inventory_insights(client=client)
        assert result == assistant_service.INSIGHTS_FALLBACK
