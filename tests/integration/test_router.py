"""Integration tests for the HTTP routes."""

from __future__ import annotations

import pytest

from gateway_service.features.graphql.router import GraphQLRequest
from gateway_service.features.graphql.types import ServiceDescriptor

pytestmark = pytest.mark.integration

HEALTH_PATH = "/.well-known/apollo/server-health"


def echo_service() -> ServiceDescriptor:
    return ServiceDescriptor.model_validate(
        {
            "name": "echo",
            "actions": {
                "hello": {
                    "name": "echo.hello",
                    "handler": lambda params, meta: "hi",
                    "graphql": {"query": "hello: String"},
                },
            },
        }
    )


class TestGraphQLEndpoint:
    """Tests for POST /graphql."""

    async def test_query(self, broker, client):
        await broker.add_service(echo_service())

        response = await client.post("/graphql", json={"query": "{ hello }"})

        assert response.status_code == 200
        assert response.json() == {"data": {"hello": "hi"}}

    async def test_operation_name_and_variables(self, broker, client):
        await broker.add_service(echo_service())

        response = await client.post(
            "/graphql",
            json={
                "query": "query A { hello } query B($x: String) { hello }",
                "operationName": "B",
                "variables": {"x": "y"},
            },
        )

        assert response.json() == {"data": {"hello": "hi"}}

    async def test_missing_query_rejected(self, client):
        response = await client.post("/graphql", json={"variables": {}})
        assert response.status_code == 422

    async def test_composition_failure(self, broker, client):
        await broker.add_service(
            ServiceDescriptor.model_validate(
                {"name": "broken", "settings": {"graphql": {"type": "type Broken {"}}}
            )
        )

        response = await client.post("/graphql", json={"query": "{ hello }"})

        assert response.status_code == 500
        assert response.headers["content-type"] == "application/problem+json"
        body = response.json()
        assert body["type"] == "unable-compile-graphql-schema"
        assert "reason" in body


class TestHealth:
    """Tests for the schema health probe."""

    async def test_pass(self, broker, client):
        await broker.add_service(echo_service())

        response = await client.get(HEALTH_PATH)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/health+json"
        assert response.json() == {"status": "pass", "schema": True}

    async def test_fail_without_services(self, client):
        response = await client.get(HEALTH_PATH)

        assert response.status_code == 503
        assert response.headers["content-type"] == "application/health+json"
        assert response.json() == {"status": "fail", "schema": False}


class TestMetrics:
    """Tests for /metrics."""

    async def test_exposes_gateway_metrics(self, broker, client):
        await broker.add_service(echo_service())
        await client.post("/graphql", json={"query": "{ hello }"})

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "graphql_gateway_schema_rebuilds_total" in response.text


@pytest.mark.unit
def test_request_model_accepts_both_spellings():
    assert GraphQLRequest.model_validate({"query": "{ a }", "operationName": "A"}).operation_name == "A"
    assert GraphQLRequest.model_validate({"query": "{ a }", "operation_name": "B"}).operation_name == "B"
