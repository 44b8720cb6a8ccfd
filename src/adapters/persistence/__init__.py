from .dynamodb_fleet_store import DynamoDbFleetStore
from .memory_fleet_store import InMemoryFleetStore
from .seed import seed_demo_fleet

__all__ = [
    "DynamoDbFleetStore",
    "InMemoryFleetStore",
    "seed_demo_fleet",
]
