"""
In-memory stand-in for the Metronome HTTP endpoints.

Served through httpx.MockTransport so MetronomeClient runs its real request
code. Rows are plain dicts in wire shape. Writes change the rows the way the
real endpoints do, so a refresh after a write sees the result.

Per-route failure injection:
    collaborator.fail("PATCH", "action-items", status=500)
    collaborator.fail_network("PATCH", "decisions")
    gate = collaborator.hold("GET", "initiatives")   # answer once gate.set()
    collaborator.unhold("GET", "initiatives")        # later requests pass
"""

import asyncio
import copy
import itertools
import json
from datetime import date

import httpx

from .seed import TODAY

API_PREFIX = "/api/metronome/"


class FakeCollaborator:
    def __init__(self, rows: dict | None = None):
        rows = copy.deepcopy(rows or {})
        self.summary: dict | None = rows.get("summary")
        self.initiatives: list[dict] = rows.get("initiatives", [])
        self.action_items: list[dict] = rows.get("action_items", [])
        self.decisions: list[dict] = rows.get("decisions", [])
        self.key_dates: list[dict] = rows.get("key_dates", [])
        self.syncs: list[dict] = rows.get("syncs", [])

        self.requests: list[dict] = []
        self._failures: dict[tuple[str, str], tuple[int | None, str]] = {}
        self._gates: dict[tuple[str, str], asyncio.Event] = {}
        self._ids = itertools.count(100)

    # ==== Failure injection ====

    def fail(self, method: str, route: str, status: int = 500, error: str = "boom") -> None:
        self._failures[(method, route)] = (status, error)

    def fail_network(self, method: str, route: str) -> None:
        self._failures[(method, route)] = (None, "connection refused")

    def heal(self, method: str, route: str) -> None:
        self._failures.pop((method, route), None)

    def hold(self, method: str, route: str) -> asyncio.Event:
        """Block matching requests until the returned event is set."""
        gate = asyncio.Event()
        self._gates[(method, route)] = gate
        return gate

    def unhold(self, method: str, route: str) -> None:
        """Stop holding new requests. Requests already held wait for their gate."""
        self._gates.pop((method, route), None)

    # ==== Transport ====

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def sent(self, method: str, route: str) -> list[dict]:
        return [r["json"] for r in self.requests if r["method"] == method and r["route"] == route]

    async def handle(self, request: httpx.Request) -> httpx.Response:
        route = request.url.path.removeprefix(API_PREFIX)
        body = json.loads(request.content) if request.content else None
        self.requests.append(
            {
                "method": request.method,
                "route": route,
                "json": body,
                "params": dict(request.url.params),
            }
        )

        gate = self._gates.get((request.method, route))
        if gate is not None:
            await gate.wait()

        failure = self._failures.get((request.method, route))
        if failure is not None:
            status, error = failure
            if status is None:
                raise httpx.ConnectError(error, request=request)
            return httpx.Response(status, json={"error": error})

        return self._answer(request.method, route, dict(request.url.params), body)

    def _ok(self, data) -> httpx.Response:
        return httpx.Response(200, json={"data": data})

    def _answer(self, method: str, route: str, params: dict, body) -> httpx.Response:
        if method == "GET":
            if route == "syncs/summary":
                return self._ok(self.summary)
            if route == "initiatives":
                return self._ok(self.initiatives)
            if route == "decisions":
                status = params.get("status")
                return self._ok([d for d in self.decisions if status is None or d["status"] == status])
            if route == "key-dates":
                return self._ok(self.key_dates)
            if route == "action-items":
                return self._ok(self.action_items)
            if route == "syncs":
                newest = sorted(self.syncs, key=lambda s: s["sync_date"], reverse=True)
                return self._ok(newest[: int(params.get("limit", 10))])

        if route == "action-items":
            return self._write_action_item(method, body)
        if route == "decisions" and method == "PATCH":
            decision = self._row(self.decisions, body["id"])
            if body["action"] == "decide":
                decision.update(status="decided", decision_text=body["decision_text"])
            else:
                decision["status"] = "deferred"
            return self._ok(decision)
        if route.startswith("initiatives"):
            if method == "POST":
                row = {"id": f"i-{next(self._ids)}", "is_archived": False, **body}
                self.initiatives.append(row)
                return httpx.Response(201, json={"data": row})
            initiative = self._row(self.initiatives, route.split("/", 1)[1])
            initiative["priority"] = body["priority"]
            return self._ok(initiative)
        if route == "syncs" and method == "POST":
            row = {"id": f"s-{next(self._ids)}", **body}
            self.syncs.append(row)
            self._update_next_sync(body)
            return httpx.Response(201, json={"data": row})
        if route.startswith("syncs/") and method == "PATCH":
            sync = self._row(self.syncs, route.split("/", 1)[1])
            sync.update(body)
            self._update_next_sync(body)
            return self._ok(sync)

        return httpx.Response(404, json={"error": f"no route {method} {route}"})

    def _write_action_item(self, method: str, body: dict) -> httpx.Response:
        if method == "POST":
            row = {"id": f"a-{next(self._ids)}", "status": "pending", "completed_at": None, **body}
            self.action_items.append(row)
            return httpx.Response(201, json={"data": row})
        if method == "DELETE":
            self.action_items = [a for a in self.action_items if a["id"] != body["id"]]
            return self._ok({"success": True})

        item = self._row(self.action_items, body["id"])
        if body["action"] == "toggle":
            done = item["status"] == "done"
            item["status"] = "pending" if done else "done"
            item["completed_at"] = None if done else "2025-03-12T10:00:00+00:00"
        else:
            item.update({k: v for k, v in body.items() if k not in ("action", "id")})
        return self._ok(item)

    def _update_next_sync(self, body: dict) -> None:
        if self.summary is None:
            return
        next_sync = self.summary.setdefault("nextSync", {})
        if body.get("next_sync_date"):
            next_sync["date"] = body["next_sync_date"]
            next_sync["daysUntil"] = (date.fromisoformat(body["next_sync_date"]) - TODAY).days
        if body.get("next_sync_focus"):
            next_sync["focus"] = body["next_sync_focus"]

    @staticmethod
    def _row(rows: list[dict], row_id: str) -> dict:
        for row in rows:
            if row["id"] == row_id:
                return row
        raise KeyError(row_id)
