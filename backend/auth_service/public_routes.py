"""
Which endpoints can be reached without a token.

PUBLIC_ROUTES is the single table both the global auth hook and individual
routes consult. A rule matches when the method is listed and the path either
equals the pattern (exact) or starts with it (prefix).
"""

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Tuple

API_PREFIX = "/api"
LOGOUT_PATH = f"{API_PREFIX}/users/logout"


@dataclass(frozen=True)
class PublicRoute:
    path: str
    methods: FrozenSet[str]
    exact: bool = False

    def matches(self, path: str, method: str) -> bool:
        if method not in self.methods:
            return False
        if self.exact:
            return path == self.path
        return path.startswith(self.path)


PUBLIC_ROUTES: Tuple[PublicRoute, ...] = (
    PublicRoute("/health", frozenset({"GET"}), exact=True),
    PublicRoute(f"{API_PREFIX}/users/login", frozenset({"POST"}), exact=True),
    PublicRoute(f"{API_PREFIX}/users/register", frozenset({"POST"}), exact=True),
    PublicRoute(f"{API_PREFIX}/events", frozenset({"GET"}), exact=False),
    # CORS preflight carries no credentials
    PublicRoute("/", frozenset({"OPTIONS"}), exact=False),
)

# Reachable by a token holder without the global hook's revocation pre-check;
# the route's own guard still verifies the token before acting on it.
GATE_EXEMPT_PATHS: FrozenSet[str] = frozenset({LOGOUT_PATH})


def is_public_route(path: str, method: str, routes: Iterable[PublicRoute] = PUBLIC_ROUTES) -> bool:
    method = method.upper()
    return any(route.matches(path, method) for route in routes)


def is_api_path(path: str) -> bool:
    return path == API_PREFIX or path.startswith(API_PREFIX + "/")
