"""Shared test fixtures and dummy classes."""

from __future__ import annotations

from typing import Any, Callable

from stash_feed.cancellation import CancellationToken
from stash_feed.errors import AbortedError

Handler = Callable[[str, dict[str, Any]], Any]


class DummyGraphQLClient:
    """Records every query and answers through ``handler``.

    ``handler(document, variables)`` returns the ``data`` mapping or an
    exception instance to raise. A cancelled token short-circuits like the
    real client and is not recorded.
    """

    def __init__(self, handler: Handler | None = None) -> None:
        self.handler = handler or (lambda _doc, _vars: {})
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.mutations: list[tuple[str, dict[str, Any]]] = []

    async def _answer(self, document: str, variables: dict[str, Any]) -> dict[str, Any]:
        result = self.handler(document, variables)
        if isinstance(result, BaseException):
            raise result
        return result

    async def query(
        self,
        document: str,
        variables: dict[str, Any] | None = None,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        if token is not None and token.cancelled:
            raise AbortedError()
        variables = dict(variables or {})
        self.calls.append((document, variables))
        return await self._answer(document, variables)

    async def mutate(
        self,
        document: str,
        variables: dict[str, Any] | None = None,
        token: CancellationToken | None = None,
    ) -> dict[str, Any]:
        variables = dict(variables or {})
        self.mutations.append((document, variables))
        return await self._answer(document, variables)


class DummyCatalog:
    """Serves paged ``find*`` responses from a fixed item list."""

    def __init__(self, items: list[dict], root: str = "findScenes", field: str = "scenes"):
        self.items = items
        self.root = root
        self.field = field

    def __call__(self, _document: str, variables: dict[str, Any]) -> dict[str, Any]:
        find = variables.get("filter") or {}
        page = find.get("page", 1)
        per_page = find.get("per_page", 20)
        start = (page - 1) * per_page
        return {
            self.root: {
                "count": len(self.items),
                self.field: self.items[start : start + per_page],
            }
        }


def make_scene(
    ident: int,
    duration: float | None = 30.0,
    width: int | None = 1920,
    height: int | None = 1080,
) -> dict[str, Any]:
    file: dict[str, Any] = {"id": f"f{ident}", "duration": duration}
    if width is not None:
        file["width"] = width
    if height is not None:
        file["height"] = height
    return {"id": str(ident), "title": f"scene {ident}", "files": [file]}


def make_marker(ident: int, scene_id: int | None = None) -> dict[str, Any]:
    return {
        "id": str(ident),
        "title": f"marker {ident}",
        "seconds": 1.0,
        "primary_tag": {"id": "1", "name": "primary"},
        "tags": [],
        "scene": make_scene(scene_id if scene_id is not None else ident),
    }
