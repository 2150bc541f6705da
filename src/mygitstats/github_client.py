"""Async GitHub REST and GraphQL client."""

import asyncio
from datetime import UTC, datetime
from typing import Any, Self

import httpx
from rich.console import Console

from mygitstats.models import TrafficData, TrafficPoint
from mygitstats.schema import PopularPath, Referrer

console = Console()


class GitHubAPIError(Exception):
    """Base exception for GitHub API errors."""

    def __init__(self, message: str, status_code: int | None = None):
        """Initialize with the HTTP status, when there was one.

        Args:
            message: Error message.
            status_code: HTTP status code of the failed response.
        """
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(GitHubAPIError):
    """Raised when a rate limit persists after the allowed retries."""

    def __init__(
        self,
        message: str,
        reset_at: datetime | None = None,
        retry_after: float | None = None,
        status_code: int | None = None,
    ):
        """Initialize with reset time.

        Args:
            message: Error message.
            reset_at: When the primary rate limit resets (UTC).
            retry_after: Server-requested wait in seconds.
            status_code: HTTP status code of the last response.
        """
        super().__init__(message, status_code)
        self.reset_at = reset_at
        self.retry_after = retry_after


class AuthenticationError(GitHubAPIError):
    """Raised for authentication failures."""


class ForbiddenError(GitHubAPIError):
    """Raised when the token lacks permission for the resource."""


class NotFoundError(GitHubAPIError):
    """Raised when repository doesn't exist or no access."""


class GraphQLError(GitHubAPIError):
    """Raised when a GraphQL response carries errors and no data."""


class GitHubClient:
    """Async client for the GitHub REST and GraphQL APIs.

    Handles authentication, pagination, rate limiting, and error recovery.
    Rate-limited requests (primary or secondary) are retried at most
    ``RATE_LIMIT_RETRIES`` more times after waiting as long as the server asks.

    Attributes:
        BASE_URL: GitHub API base URL.
        RATE_LIMIT_RETRIES: Extra attempts allowed after a rate-limit response.
    """

    BASE_URL = "https://api.github.com"
    RATE_LIMIT_RETRIES = 2

    def __init__(self, token: str, timeout: float = 30.0):
        """Initialize client with authentication token.

        Args:
            token: Personal access token, installation token or app JWT.
            timeout: Request timeout in seconds.
        """
        self.token = token
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self.token}",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "mygitstats",
            },
            timeout=self.timeout,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()

    @staticmethod
    def _rate_limit_wait(response: httpx.Response) -> tuple[str, float, datetime | None] | None:
        """Classify a 403/429 response as a rate limit.

        Returns:
            (kind, seconds to wait, reset time) or None when not rate limited.
        """
        retry_after = response.headers.get("Retry-After")
        if response.headers.get("X-RateLimit-Remaining") == "0":
            reset_timestamp = int(response.headers.get("X-RateLimit-Reset", "0"))
            reset_at = datetime.fromtimestamp(reset_timestamp, tz=UTC)
            if retry_after is not None:
                wait = float(retry_after)
            else:
                wait = max((reset_at - datetime.now(UTC)).total_seconds(), 0.0)
            return "primary", wait, reset_at

        if retry_after is not None:
            return "secondary", float(retry_after), None

        if "secondary rate limit" in response.text.lower():
            return "secondary", 60.0, None

        return None

    async def _send(
        self,
        method: str,
        url: str,
        params: dict | None = None,
        json: Any = None,
        max_retries: int = 3,
    ) -> httpx.Response:
        """Execute request with retry logic.

        Args:
            method: HTTP method.
            url: API endpoint path or absolute URL.
            params: Query parameters.
            json: JSON request body.
            max_retries: Maximum attempts for transient (5xx/network) failures.

        Returns:
            The successful response.

        Raises:
            RateLimitError: When rate limit persists after retries.
            AuthenticationError: For auth failures.
            ForbiddenError: For permission failures.
            NotFoundError: When resource not found.
            GitHubAPIError: For other API errors.
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        last_error: Exception | None = None
        rate_limit_retries = 0
        attempt = 0

        while attempt < max_retries:
            try:
                response = await self._client.request(method, url, params=params, json=json)
            except httpx.RequestError as e:
                last_error = GitHubAPIError(f"Request failed: {e}")
                await asyncio.sleep(2**attempt)
                attempt += 1
                continue

            if response.is_success:
                return response

            status = response.status_code

            if status in (403, 429):
                limit = self._rate_limit_wait(response)
                if limit is not None:
                    kind, wait, reset_at = limit
                    if rate_limit_retries < self.RATE_LIMIT_RETRIES:
                        rate_limit_retries += 1
                        label = "Rate limit hit" if kind == "primary" else "Secondary rate limit"
                        console.print(
                            f"[yellow]\\[throttle] {label} for {method} {url}"
                            f" - retry after {wait:.0f}s[/yellow]"
                        )
                        await asyncio.sleep(wait)
                        continue
                    raise RateLimitError(
                        f"Rate limit exceeded for {method} {url}",
                        reset_at=reset_at,
                        retry_after=wait,
                        status_code=status,
                    )

            if status == 401:
                raise AuthenticationError("Invalid or expired token", status)

            if status == 403:
                raise ForbiddenError(f"Access forbidden - check token permissions: {url}", status)

            if status == 404:
                raise NotFoundError(f"Resource not found or no access: {url}", status)

            # Server errors - retry
            if status >= 500:
                last_error = GitHubAPIError(f"Server error {status}: {response.text}", status)
                await asyncio.sleep(2**attempt)
                attempt += 1
                continue

            raise GitHubAPIError(f"API error {status}: {response.text}", status)

        raise last_error or GitHubAPIError("Request failed after retries")

    async def _request(
        self,
        method: str,
        path: str,
        params: dict | None = None,
        json: Any = None,
    ) -> Any:
        """Execute request and decode the JSON body."""
        response = await self._send(method, path, params=params, json=json)
        return response.json()

    async def post(self, path: str, json: Any = None) -> Any:
        """POST a JSON body and decode the JSON response."""
        return await self._request("POST", path, json=json)

    async def paginate(
        self,
        path: str,
        params: dict | None = None,
        items_key: str | None = None,
    ) -> list[dict]:
        """Fetch every page of a list endpoint by following Link headers.

        Args:
            path: API endpoint path.
            params: Query parameters for the first page.
            items_key: Key holding the list when the payload is an object
                (e.g. "repositories" for /installation/repositories).

        Returns:
            Concatenated items from all pages.
        """
        items: list[dict] = []
        url: str | None = path
        page_params = {"per_page": 100, **(params or {})}

        while url:
            response = await self._send("GET", url, params=page_params)
            data = response.json()
            items.extend(data[items_key] if items_key else data)
            url = response.links.get("next", {}).get("url")
            # The next link already carries the query string.
            page_params = None

        return items

    async def graphql(self, query: str, variables: dict | None = None) -> dict:
        """Run a GraphQL query.

        Partial responses (data plus errors, e.g. an inaccessible repository
        in an aliased batch) are returned with the errors printed.

        Args:
            query: GraphQL document.
            variables: Query variables.

        Returns:
            The ``data`` object of the response.

        Raises:
            GraphQLError: If the response has errors and no data.
        """
        body: dict[str, Any] = {"query": query}
        if variables:
            body["variables"] = variables
        payload = await self._request("POST", "/graphql", json=body)

        errors = payload.get("errors") or []
        data = payload.get("data")
        if errors and data is None:
            messages = "; ".join(str(e.get("message", e)) for e in errors)
            raise GraphQLError(f"GraphQL query failed: {messages}")
        for error in errors:
            console.print(f"[yellow]\\[graphql] {error.get('message', error)}[/yellow]")
        return data or {}

    async def get_views(self, owner: str, repo: str) -> TrafficData:
        """Fetch daily page view traffic for the last 14 days.

        Args:
            owner: Repository owner/organization.
            repo: Repository name.

        Returns:
            TrafficData with views breakdown.
        """
        data = await self._request(
            "GET", f"/repos/{owner}/{repo}/traffic/views", params={"per": "day"}
        )
        return TrafficData(
            count=data.get("count", 0),
            uniques=data.get("uniques", 0),
            items=[
                TrafficPoint(timestamp=v["timestamp"], count=v["count"], uniques=v["uniques"])
                for v in data.get("views", [])
            ],
        )

    async def get_clones(self, owner: str, repo: str) -> TrafficData:
        """Fetch daily clone traffic for the last 14 days.

        Args:
            owner: Repository owner/organization.
            repo: Repository name.

        Returns:
            TrafficData with clones breakdown.
        """
        data = await self._request(
            "GET", f"/repos/{owner}/{repo}/traffic/clones", params={"per": "day"}
        )
        return TrafficData(
            count=data.get("count", 0),
            uniques=data.get("uniques", 0),
            items=[
                TrafficPoint(timestamp=c["timestamp"], count=c["count"], uniques=c["uniques"])
                for c in data.get("clones", [])
            ],
        )

    async def get_top_referrers(self, owner: str, repo: str) -> list[Referrer]:
        """Fetch the top 10 referrers over the last 14 days."""
        data = await self._request("GET", f"/repos/{owner}/{repo}/traffic/popular/referrers")
        return [
            Referrer(referrer=r["referrer"], count=r["count"], uniques=r["uniques"]) for r in data
        ]

    async def get_top_paths(self, owner: str, repo: str) -> list[PopularPath]:
        """Fetch the top 10 content paths over the last 14 days."""
        data = await self._request("GET", f"/repos/{owner}/{repo}/traffic/popular/paths")
        return [
            PopularPath(path=p["path"], title=p["title"], count=p["count"], uniques=p["uniques"])
            for p in data
        ]

    async def list_user_repos(
        self, affiliation: str = "owner,collaborator,organization_member"
    ) -> list[dict]:
        """List repositories the authenticated user can access."""
        return await self.paginate("/user/repos", params={"affiliation": affiliation})

    async def list_installation_repos(self) -> list[dict]:
        """List repositories granted to the authenticating app installation."""
        return await self.paginate("/installation/repositories", items_key="repositories")
