"""Contribution calendar of the authenticated user."""

from rich.console import Console

from mygitstats.github_client import GitHubAPIError, GitHubClient
from mygitstats.schema import ContributionDay

console = Console()

CONTRIBUTIONS_QUERY = """
query ($from: DateTime!, $to: DateTime!) {
  viewer {
    contributionsCollection(from: $from, to: $to) {
      contributionCalendar {
        weeks {
          contributionDays {
            date
            contributionCount
          }
        }
      }
    }
  }
}
"""


async def fetch_contributions(
    client: GitHubClient, from_date: str, to_date: str
) -> list[ContributionDay]:
    """Fetch daily contribution counts between two dates, inclusive.

    ``viewer`` only resolves for personal tokens, so this is skipped for app
    installations. Any failure yields an empty list.

    Args:
        client: Opened client authenticated as a user.
        from_date: First date (YYYY-MM-DD).
        to_date: Last date (YYYY-MM-DD).

    Returns:
        One entry per calendar day reported by GitHub.
    """
    console.print(f"\\[contrib] Fetching contributions from {from_date} to {to_date}")

    try:
        data = await client.graphql(
            CONTRIBUTIONS_QUERY,
            {"from": f"{from_date}T00:00:00Z", "to": f"{to_date}T23:59:59Z"},
        )
        weeks = data["viewer"]["contributionsCollection"]["contributionCalendar"]["weeks"]
        days = [
            ContributionDay(date=day["date"], count=day["contributionCount"])
            for week in weeks
            for day in week["contributionDays"]
        ]
    except (GitHubAPIError, KeyError, TypeError) as e:
        console.print(f"[red]\\[contrib] Failed to fetch contributions: {e}[/red]")
        return []

    console.print(f"\\[contrib] Got {len(days)} contribution days")
    return days
