"""Fixtures for GraphQL transport and gateway tests (HTTP mocked with respx)."""

from __future__ import annotations

import io
import json

import httpx
import pytest
from rich.console import Console

from pmu_cli.api.client import GraphQLClient
from pmu_cli.api.gateway import GitHubGateway


def gql(data: dict, status: int = 200, **kwargs) -> httpx.Response:
    return httpx.Response(status, json={"data": data}, **kwargs)


def sent_payload(call) -> dict:
    return json.loads(call.request.content)


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def client(sleeps) -> GraphQLClient:
    client = GraphQLClient("test-token", sleep=sleeps.append, console=Console(file=io.StringIO()))
    yield client
    client.close()


@pytest.fixture
def github(client) -> GitHubGateway:
    return GitHubGateway(client, console=Console(file=io.StringIO()))


@pytest.fixture(name="gql")
def gql_fixture():
    return gql


@pytest.fixture(name="sent_payload")
def sent_payload_fixture():
    return sent_payload
