from __future__ import annotations

import os
import urllib.request
from collections.abc import Iterator
from uuid import uuid4

import pytest

from src.adapters.aws import dynamodb_client
from src.adapters.persistence import DynamoDbFleetStore, seed_demo_fleet


def _localstack_healthy(endpoint_url: str) -> bool:
    url = endpoint_url.rstrip("/") + "/_localstack/health"
    try:
        with urllib.request.urlopen(url, timeout=1.5) as resp:  # nosec B310
            return 200 <= resp.status < 300
    except Exception:
        return False


@pytest.fixture(scope="session", autouse=True)
def localstack_env() -> None:
    """Point boto3 at LocalStack unless the environment already says otherwise."""

    os.environ.setdefault("USE_LOCALSTACK", "true")
    os.environ.setdefault("ENDPOINT_URL", "http://localhost:4566")
    os.environ.setdefault("AWS_REGION", "eu-west-1")

    # boto3 wants credentials even for LocalStack.
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")


@pytest.fixture(scope="session")
def require_localstack(localstack_env: None) -> str:
    endpoint_url = os.environ.get("ENDPOINT_URL", "http://localhost:4566")
    if not _localstack_healthy(endpoint_url):
        msg = f"LocalStack not reachable at {endpoint_url}"

        # CI starts LocalStack, so a missing one there is a real failure.
        if (
            os.getenv("CI")
            or os.getenv("GITHUB_ACTIONS")
            or os.getenv("REQUIRE_LOCALSTACK")
        ):
            pytest.fail(msg, pytrace=False)

        pytest.skip(f"{msg}; skipping integration tests")
    return endpoint_url


@pytest.fixture
def dynamodb_store(require_localstack: str) -> Iterator[DynamoDbFleetStore]:
    """Seeded store on fresh, uniquely named tables; dropped afterwards."""

    suffix = uuid4().hex[:8]
    store = DynamoDbFleetStore(
        locations_table=f"fleetbook-test-locations-{suffix}",
        vehicles_table=f"fleetbook-test-vehicles-{suffix}",
        trips_table=f"fleetbook-test-trips-{suffix}",
    )
    store.create_tables()
    seed_demo_fleet(store)

    yield store

    ddb = dynamodb_client()
    for table in (store.locations_table, store.vehicles_table, store.trips_table):
        ddb.delete_table(TableName=table)
