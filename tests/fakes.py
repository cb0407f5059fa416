"""In-memory CommAPI served through httpx.MockTransport."""

from __future__ import annotations

import httpx


class Interrupted(BaseException):
    """Simulates the process being killed mid-request."""


class FakeCommAPI:
    """Serves /list and /get from a dict describing the node tree.

    ``tree`` maps a path string to ``{"endpoints": {name: value}, "nodes": [names]}``.
    """

    def __init__(self, tree: dict) -> None:
        self.tree = tree
        self.requests: list[str] = []
        self.failing: set[str] = set()
        self.broken: set[str] = set()
        self.interrupt_after: int | None = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        if self.interrupt_after is not None and len(self.requests) >= self.interrupt_after:
            raise Interrupted

        path = request.url.path
        self.requests.append(path)

        if path in self.broken:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.failing:
            return httpx.Response(200, json={"Result": "Error", "Message": "Failed"})

        if path.startswith("/list/"):
            node = self.tree.get(path[len("/list/") :])
            if node is None:
                return httpx.Response(200, json={"Result": "Error"})
            return httpx.Response(
                200,
                json={
                    "Result": "Success",
                    "Endpoints": [{"Name": name} for name in node.get("endpoints", {})],
                    "Nodes": [{"Name": name} for name in node.get("nodes", [])],
                },
            )

        if path.startswith("/get/"):
            node_path, _, name = path[len("/get/") :].rpartition(".")
            node = self.tree.get(node_path)
            if node is None or name not in node.get("endpoints", {}):
                return httpx.Response(404, json={"Result": "Error"})
            return httpx.Response(
                200,
                json={"Result": "Success", "Values": {name: node["endpoints"][name]}},
            )

        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def listings(self) -> list[str]:
        return [p[len("/list/") :] for p in self.requests if p.startswith("/list/")]

    @property
    def gets(self) -> list[str]:
        return [p[len("/get/") :] for p in self.requests if p.startswith("/get/")]
