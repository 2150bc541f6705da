"""Credential resolution: one personal token, or one installation token per owner."""

import json
from dataclasses import dataclass, field
from typing import Literal

from rich.console import Console

from mygitstats.config import ConfigurationError, Settings
from mygitstats.github_client import GitHubClient

console = Console()

AuthModeName = Literal["pat", "app"]


class UnknownOwnerError(KeyError):
    """Raised when asking for credentials of an owner that has no token."""

    def __init__(self, owner: str, valid_owners: list[str]):
        super().__init__(owner)
        self.owner = owner
        self.valid_owners = valid_owners

    def __str__(self) -> str:
        return f'No token for owner "{self.owner}". Valid owners: {", ".join(self.valid_owners)}'


@dataclass
class PatAuth:
    """Single credential: one personal access token, one implicit identity."""

    token: str
    mode: AuthModeName = field(default="pat", init=False)

    def token_type(self) -> str:
        """Kind of credential, as reported in the run log."""
        return "classic-pat"

    def create_client(self) -> GitHubClient:
        """Client authenticated with the personal access token."""
        return GitHubClient(self.token)


@dataclass
class AppAuth:
    """Multi identity: GitHub App installation tokens keyed by owner login."""

    tokens: dict[str, str]
    mode: AuthModeName = field(default="app", init=False)

    def token_type(self) -> str:
        """Kind of credential, as reported in the run log."""
        return "github-app-installation"

    def owners(self) -> list[str]:
        """Owner logins that have an installation token, in configured order."""
        return list(self.tokens)

    def create_client(self) -> GitHubClient:
        """Client for identity-agnostic calls, bound to the first owner.

        Not suitable for calls scoped to a particular owner's installation;
        use ``client_for`` for those.
        """
        return self.client_for(self.owners()[0])

    def client_for(self, owner: str) -> GitHubClient:
        """Client authenticated with ``owner``'s installation token.

        Raises:
            UnknownOwnerError: If no token was provided for ``owner``.
        """
        if owner not in self.tokens:
            raise UnknownOwnerError(owner, self.owners())
        return GitHubClient(self.tokens[owner])


AuthProvider = PatAuth | AppAuth


def parse_app_tokens(raw: str) -> dict[str, str] | None:
    """Parse the owner to token JSON object.

    Returns:
        The mapping, or None when it is not a non-empty object of
        non-empty strings.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict) or not data:
        return None
    for owner, token in data.items():
        if not isinstance(token, str) or not owner or not token:
            return None
    return data


def resolve_auth(settings: Settings) -> AuthProvider:
    """Pick the credential mode once, at startup.

    Multi-identity wins when MYGITSTATS_APP_TOKENS is a valid mapping;
    otherwise MYGITSTATS_GITHUB_TOKEN is used.

    Args:
        settings: Application settings.

    Returns:
        AppAuth or PatAuth.

    Raises:
        ConfigurationError: If neither credential source is usable.
    """
    if settings.app_tokens.strip():
        tokens = parse_app_tokens(settings.app_tokens)
        if tokens is not None:
            console.print(f"[dim]\\[auth] App mode with {len(tokens)} owner(s)[/dim]")
            return AppAuth(tokens)
        console.print(
            "[yellow]\\[auth] MYGITSTATS_APP_TOKENS is not a non-empty JSON object of "
            "owner -> token strings; falling back to MYGITSTATS_GITHUB_TOKEN[/yellow]"
        )

    if settings.github_token:
        return PatAuth(settings.github_token)

    raise ConfigurationError(
        "No GitHub credentials configured. Set MYGITSTATS_APP_TOKENS to a JSON object "
        'of owner -> installation token (e.g. {"my-org": "ghs_..."}), or set '
        "MYGITSTATS_GITHUB_TOKEN to a classic personal access token "
        "(https://github.com/settings/tokens)."
    )
