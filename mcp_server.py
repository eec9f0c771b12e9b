import logging
import os
import sys

from fastmcp import FastMCP

mcp = FastMCP("Figma MCP Server")


def configure_logging(level: str = None):
    # stdout carries the stdio transport, so logs go to stderr.
    logging.basicConfig(
        level=(level or os.getenv("LOG_LEVEL", "INFO")).upper(),
        format="[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        stream=sys.stderr,
    )


def main():
    configure_logging()
    # Importing the tools module registers every tool on the shared server.
    from figma_tools import mcp as server

    server.run()


if __name__ == "__main__":
    main()
