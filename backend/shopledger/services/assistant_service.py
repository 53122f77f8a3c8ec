# Overview: Service-layer client for the text-generation collaborator; never touches ledger state.

from __future__ import annotations

import json

import httpx
from flask import current_app

from .analytics_service import sales_analytics
from .catalog_service import list_products
from .transaction_service import list_transactions

SYSTEM_PROMPT = """You are an intelligent POS assistant for shopkeepers. You help analyze sales data, inventory management, and provide business insights.

Context data available:
- Sales analytics: {sales}
- Inventory data: {inventory}
- Recent transactions: {transactions}

All money amounts are integer cents. Provide helpful, actionable insights in a friendly manner. Always respond with JSON in this format:
{{
  "message": "Your response message",
  "suggestions": ["suggestion1", "suggestion2", "suggestion3"],
  "data": {{}}
}}

Keep responses concise but informative. Focus on practical business advice."""

INSIGHTS_PROMPT = """Analyze this inventory and sales data to provide actionable insights:

Inventory: {inventory}
Sales Data: {sales}

Provide insights about:
1. Which products to reorder
2. Slow-moving inventory suggestions
3. Optimal stock levels
4. Profit optimization opportunities

Respond in JSON format with message and suggestions."""

CHAT_FALLBACK = {
    "message": "I'm currently unable to process your request. Please try again later.",
    "suggestions": [
        "Check your sales dashboard for recent trends",
        "Review inventory alerts for low stock items",
        "Consider analyzing your top-selling products",
    ],
    "data": None,
}

INSIGHTS_FALLBACK = {
    "message": "Unable to generate inventory insights at the moment.",
    "suggestions": [
        "Review products with low stock levels",
        "Check for slow-moving inventory",
        "Monitor expiring products",
    ],
    "data": None,
}

RECENT_TRANSACTIONS = 10


class AssistantUnavailable(Exception):
    """The collaborator cannot be reached or returned something unusable."""


def _dump(value) -> str:
    return json.dumps(value, default=str, separators=(",", ":"))


def _complete(messages: list[dict], client: httpx.Client | None = None) -> dict:
    cfg = current_app.config
    api_key = cfg.get("ASSISTANT_API_KEY")
    if not api_key:
        raise AssistantUnavailable("assistant API key is not configured")

    body = {
        "model": cfg.get("ASSISTANT_MODEL"),
        "messages": messages,
        "response_format": {"type": "json_object"},
    }
    headers = {"Authorization": f"Bearer {api_key}"}
    timeout = cfg.get("ASSISTANT_TIMEOUT_SECONDS", 20)

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout)
    try:
        response = client.post(cfg["ASSISTANT_API_URL"], json=body, headers=headers)
        response.raise_for_status()
        content = response.json()["choices"][0]["message"]["content"]
        result = json.loads(content or "{}")
    except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
        raise AssistantUnavailable(str(exc)) from exc
    finally:
        if owns_client:
            client.close()

    if not isinstance(result, dict):
        raise AssistantUnavailable("assistant returned a non-object response")
    return result


def _shape(result: dict, default_message: str) -> dict:
    suggestions = result.get("suggestions") or []
    if not isinstance(suggestions, list):
        suggestions = [str(suggestions)]
    return {
        "message": result.get("message") or default_message,
        "suggestions": [str(s) for s in suggestions],
        "data": result.get("data") or None,
    }


def process_chat_query(message: str, *, client: httpx.Client | None = None) -> dict:
    """
    Answer a natural-language question with weekly analytics, the catalog and
    recent transactions as context.

    Falls back to a static answer whenever the collaborator fails.
    """
    context = SYSTEM_PROMPT.format(
        sales=_dump(sales_analytics("weekly")),
        inventory=_dump([p.to_dict() for p in list_products()]),
        transactions=_dump([t.to_dict() for t in list_transactions(limit=RECENT_TRANSACTIONS)]),
    )
    messages = [
        {"role": "system", "content": context},
        {"role": "user", "content": message},
    ]
    try:
        result = _complete(messages, client=client)
    except AssistantUnavailable as exc:
        current_app.logger.warning("Assistant chat unavailable: %s", exc)
        return dict(CHAT_FALLBACK)
    return _shape(result, "I'm here to help with your business insights!")


def generate_inventory_insights(*, client: httpx.Client | None = None) -> dict:
    """Reorder / slow-mover / margin advice from the catalog and monthly analytics."""
    prompt = INSIGHTS_PROMPT.format(
        inventory=_dump([p.to_dict() for p in list_products()]),
        sales=_dump(sales_analytics("monthly")),
    )
    try:
        result = _complete([{"role": "user", "content": prompt}], client=client)
    except AssistantUnavailable as exc:
        current_app.logger.warning("Assistant insights unavailable: %s", exc)
        return dict(INSIGHTS_FALLBACK)
    return _shape(result, "Here are your inventory insights.")
