from __future__ import annotations
import copy
from typing import Any, Dict, Optional, Protocol
from pymongo.asynchronous.collection import AsyncCollection
from pymongo.errors import PyMongoError

from storecheck.app.errors import DatabaseError
from storecheck.core.ids import new_run_id


class RunStore(Protocol):
    async def create(self, fields: Dict[str, Any]) -> str: ...

    async def find_by_id(self, run_id: str) -> Optional[Dict[str, Any]]: ...

    async def update(self, run_id: str, patch: Dict[str, Any], *, expected_status: Optional[str] = None) -> bool: ...


class CheckRunRepo:
    def __init__(self, runs: AsyncCollection):
        self.runs = runs

    async def create(self, fields: Dict[str, Any]) -> str:
        doc = {"_id": fields.get("_id") or new_run_id(), **{k: v for k, v in fields.items() if k != "_id"}}
        try:
            await self.runs.insert_one(doc)
        except PyMongoError as e:
            raise DatabaseError(f"Failed to create check run: {e}") from e
        return doc["_id"]

    async def find_by_id(self, run_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.runs.find_one({"_id": run_id})
        except PyMongoError as e:
            raise DatabaseError(f"Failed to load check run {run_id}: {e}") from e

    async def update(self, run_id: str, patch: Dict[str, Any], *, expected_status: Optional[str] = None) -> bool:
        """
        Apply `patch` atomically. With `expected_status`, the write only lands
        when the stored status still matches; returns whether it matched.
        """
        query: Dict[str, Any] = {"_id": run_id}
        if expected_status is not None:
            query["status"] = expected_status
        try:
            res = await self.runs.update_one(query, {"$set": patch})
        except PyMongoError as e:
            raise DatabaseError(f"Failed to update check run {run_id}: {e}") from e
        return res.matched_count == 1


class InMemoryCheckRunRepo:
    """Dict-backed run store for local runs and tests."""

    def __init__(self) -> None:
        self.docs: Dict[str, Dict[str, Any]] = {}

    async def create(self, fields: Dict[str, Any]) -> str:
        run_id = fields.get("_id") or new_run_id()
        self.docs[run_id] = {**copy.deepcopy(fields), "_id": run_id}
        return run_id

    async def find_by_id(self, run_id: str) -> Optional[Dict[str, Any]]:
        doc = self.docs.get(run_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def update(self, run_id: str, patch: Dict[str, Any], *, expected_status: Optional[str] = None) -> bool:
        doc = self.docs.get(run_id)
        if doc is None:
            return False
        if expected_status is not None and doc.get("status") != expected_status:
            return False
        doc.update(copy.deepcopy(patch))
        return True
