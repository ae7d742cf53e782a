"""
Public-route marker.

Routes are identified by their FastAPI route name. Marking a route public only
records the name here; `auth.dependencies.authorize_request` reads the table
and lets public routes through without credentials.

FastAPI falls back to the endpoint function's name when `name=` is omitted,
so a marked name must be explicit and namespaced (`"<feature>:<action>"`);
otherwise any other function with the same name would become public too.

    @router.get("/health", name="app:health")
    async def health(): ...

    public_routes.mark("app:health")
"""

from __future__ import annotations

from starlette.requests import Request


class PublicRoutes:
    def __init__(self) -> None:
        self._names: set[str] = set()

    def mark(self, *names: str) -> None:
        for name in names:
            if ":" not in name:
                raise ValueError(f"Public route names must be namespaced, got {name!r}.")
        self._names.update(names)

    def unmark(self, *names: str) -> None:
        self._names.difference_update(names)

    def is_public(self, name: str | None) -> bool:
        return name is not None and name in self._names

    def __contains__(self, name: object) -> bool:
        return name in self._names


public_routes = PublicRoutes()


def route_name(request: Request) -> str | None:
    """
    Name of the route that matched `request`, if any.
    """
    route = request.scope.get("route")
    return getattr(route, "name", None)
