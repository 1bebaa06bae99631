import argparse
import asyncio
import logging
from datetime import UTC, datetime

from pydantic import BaseModel

from journey_mcp.app import mcp
from journey_mcp.models.journey import JourneyRequest
from journey_mcp.models.responses import JourneyResult


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    timestamp: str


@mcp.tool()
def health() -> HealthResponse:
    """Check if the London journey planner MCP server is running and healthy.

    Returns the server status, version, and current timestamp.
    """
    from journey_mcp import __version__

    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(UTC).isoformat(),
    )


# Importing the modules registers their @mcp.tool() functions
from journey_mcp.tools import journey_tools, station_tools  # noqa: E402, F401


async def run_plan(request: JourneyRequest) -> JourneyResult:
    """Resolve one journey request outside the MCP server."""
    from journey_mcp.services.container import ServiceContainer

    async with ServiceContainer() as services:
        return await services.journey_resolver.resolve(request)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="journey-mcp",
        description="London Journey Planner MCP Server",
    )
    subparsers = parser.add_subparsers(dest="command")

    # plan command
    plan_parser = subparsers.add_parser(
        "plan",
        help="Plan one journey and print the result as JSON",
    )
    plan_parser.add_argument(
        "query",
        nargs="?",
        help='Natural-language request, e.g. "tube only from Bank to Angel"',
    )
    plan_parser.add_argument("--from", dest="origin", help="Origin (station, place or lat,lon)")
    plan_parser.add_argument("--to", dest="destination", help="Destination for manual requests")
    plan_parser.add_argument(
        "--current-location",
        help="Device location as lat,lon for trips starting 'here'",
    )
    plan_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.command == "plan":
        # Configure logging
        log_level = logging.DEBUG if args.verbose else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        if not args.query and not args.destination:
            parser.error("plan needs a query or --to")

        request = JourneyRequest(
            natural_language_query=args.query,
            origin=args.origin,
            destination=args.destination,
            current_location=args.current_location,
        )
        result = asyncio.run(run_plan(request))
        print(result.model_dump_json(indent=2, exclude_none=True))
    else:
        # Default: run MCP server
        mcp.run()


if __name__ == "__main__":
    main()
