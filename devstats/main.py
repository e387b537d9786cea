import argparse
import json
import asyncio
import logging
import sys
from datetime import date

from devstats.application.date_range import filter_languages_by_date, filter_series_by_date
from devstats.application.stats_service import StatsService
from devstats.config import load_settings
from devstats.domain.exceptions import StatsException
from devstats.infrastructure.github_client import GitHubRestClient

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="devstats", description="GitHub developer statistics")
    subparsers = parser.add_subparsers(dest="command", required=True)

    compare = subparsers.add_parser("compare", help="Aggregate and compare several users")
    compare.add_argument("usernames", nargs="+")

    profile = subparsers.add_parser("profile", help="Statistics for a single user")
    profile.add_argument("username")
    profile.add_argument("--start", type=date.fromisoformat, help="First day, YYYY-MM-DD")
    profile.add_argument("--end", type=date.fromisoformat, help="Last day, YYYY-MM-DD")

    subparsers.add_parser("rate", help="Show the remaining API budget")
    return parser


async def execute(args, service: StatsService) -> int:
    if args.command == "compare":
        result = await service.run_batch(args.usernames)
        print(result.model_dump_json(indent=2))
        if result.failed:
            logger.error(result.message)
            return 1
        return 0

    if args.command == "profile":
        try:
            summary = await service.lookup(args.username)
        except StatsException as e:
            logger.error(str(e))
            return 1
        output = summary.model_dump(mode="json")
        if args.start and args.end:
            output["window"] = {
                "start": args.start.isoformat(),
                "end": args.end.isoformat(),
                "commit_series": filter_series_by_date(summary.commit_series, args.start, args.end).model_dump(mode="json"),
                "languages": filter_languages_by_date(summary.repositories, args.start, args.end).model_dump(mode="json"),
            }
        print(json.dumps(output, indent=2))
        return 0

    status = await service.rate_status()
    print(status.model_dump_json(indent=2))
    return 0


async def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "profile" and bool(args.start) != bool(args.end):
        parser.error("--start and --end must be given together")
    settings = load_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

    if not settings.github_token:
        logger.warning("GITHUB_TOKEN is not set; using the unauthenticated rate limit.")

    async with GitHubRestClient(
        token=settings.github_token,
        api_url=settings.github_api_url,
        connector_limit=settings.connector_limit,
    ) as client:
        auth_user = await client.fetch_authenticated_user()
        if auth_user:
            logger.info(f"Authenticated as {auth_user.get('login')}.")
        return await execute(args, StatsService(client))


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user. Exiting gracefully.")


if __name__ == "__main__":
    run()
