from __future__ import annotations
from pymongo import AsyncMongoClient
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.asynchronous.database import AsyncDatabase
from typing import TypedDict

class MongoHandles(TypedDict):
    client: AsyncMongoClient
    db: AsyncDatabase
    check_runs: AsyncCollection

def connect_mongo(mongo_uri: str, db_name: str) -> MongoHandles:
    client: AsyncMongoClient = AsyncMongoClient(
        mongo_uri,
        serverSelectionTimeoutMS=30000,
        connectTimeoutMS=20000,
        socketTimeoutMS=20000,
        tz_aware=True,
    )
    db = client[db_name]
    return {
        "client": client,
        "db": db,
        "check_runs": db["check_runs"],
    }

async def ensure_indexes(handles: MongoHandles) -> None:
    runs = handles["check_runs"]

    await runs.create_index([("repository_id", 1), ("created_at", -1)])
    await runs.create_index([("status", 1), ("created_at", -1)])
