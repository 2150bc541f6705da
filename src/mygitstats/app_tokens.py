"""Mint GitHub App installation tokens for multi-owner collection."""

import time

import jwt
from rich.console import Console

from mygitstats.github_client import GitHubAPIError, GitHubClient

console = Console(stderr=True)


def normalize_private_key(pem: str) -> str:
    """Undo the literal ``\\n`` escaping secrets stores often apply to PEM keys."""
    return pem.replace("\\n", "\n") if "\\n" in pem else pem


def build_jwt(app_id: str, private_key_pem: str, now: int | None = None) -> str:
    """Build the RS256 app JWT used to list installations and mint tokens.

    The token is backdated 60 seconds for clock drift and expires after
    10 minutes, the maximum GitHub accepts.

    Args:
        app_id: GitHub App id (the ``iss`` claim).
        private_key_pem: The app's RSA private key in PEM format.
        now: Current Unix time, for tests.

    Returns:
        Compact JWT: three base64url segments without padding.
    """
    now = int(time.time()) if now is None else now
    payload = {"iss": app_id, "iat": now - 60, "exp": now + 10 * 60}
    return jwt.encode(
        payload,
        normalize_private_key(private_key_pem),
        algorithm="RS256",
        headers={"typ": "JWT"},
    )


async def list_installations(client: GitHubClient) -> list[dict]:
    return await client.paginate("/app/installations")


async def mint_installation_token(client: GitHubClient, installation_id: int) -> str:
    data = await client.post(f"/app/installations/{installation_id}/access_tokens", json={})
    token = data.get("token")
    if not token:
        raise GitHubAPIError(f"No token returned for installation {installation_id}")
    return token


async def mint_tokens(app_id: str, private_key_pem: str, owners: list[str]) -> dict[str, str]:
    """Mint one installation token per owner.

    Args:
        app_id: GitHub App id.
        private_key_pem: The app's private key.
        owners: Account logins the app is installed on.

    Returns:
        Owner login to installation token, in ``owners`` order.

    Raises:
        GitHubAPIError: If an owner has no installation or minting fails.
    """
    app_jwt = build_jwt(app_id, private_key_pem)
    tokens: dict[str, str] = {}

    async with GitHubClient(app_jwt) as client:
        installations = await list_installations(client)
        by_login = {inst["account"]["login"]: inst for inst in installations}

        for owner in owners:
            installation = by_login.get(owner)
            if installation is None:
                raise GitHubAPIError(
                    f'No installation found for owner "{owner}". Did you install the app there?'
                )
            tokens[owner] = await mint_installation_token(client, installation["id"])
            console.print(f'[dim]\\[mint] Minted installation token for "{owner}"[/dim]')

    return tokens
