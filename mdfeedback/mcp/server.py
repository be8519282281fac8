"""
md-feedback MCP server.

Thin MCP layer over ``mdfeedback.mcp.tools``: no review logic lives here.

Usage:
    python -m mdfeedback.mcp
    mdfeedback-mcp --config ./mdfeedback.yaml -v
"""

import argparse
import logging
from typing import Optional

from mdfeedback.version import __version__

logger = logging.getLogger(__name__)

_MCP_INSTRUCTIONS = (
    "Review feedback stored as HTML comments inside markdown files.\n"
    "\n"
    "READ:   get_document_structure for the full picture, list_annotations for memos.\n"
    "ACT:    update_memo_status when a memo is addressed (done/answered/wontfix).\n"
    "TRACK:  update_cursor after each step, create_checkpoint at milestones.\n"
    "RESUME: generate_handoff at the end of a session, pickup_handoff at the start.\n"
    "\n"
    "Rules:\n"
    "- Resolve every open question memo before implementing its section\n"
    "- Gates are derived from memo statuses; never edit a gate status by hand\n"
)


def build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser for the MCP server."""
    p = argparse.ArgumentParser(
        prog="mdfeedback-mcp",
        description="md-feedback MCP server: review memos, gates and checkpoints in markdown",
    )
    p.add_argument(
        "--config",
        default=None,
        help="Path to mdfeedback.yaml (default: search upward from the working directory)",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return p


def create_server(args: Optional[argparse.Namespace] = None):
    """
    Create the FastMCP server with all md-feedback tools registered.

    Args:
        args: Parsed argparse.Namespace, or None to parse from sys.argv.
    """
    from mcp.server.fastmcp import FastMCP

    from mdfeedback.config import load_config, set_feedback_config
    from mdfeedback.mcp.tools import register_feedback_tools

    if args is None:
        args = build_parser().parse_args()

    set_feedback_config(load_config(args.config))

    mcp = FastMCP(name="md-feedback", instructions=_MCP_INSTRUCTIONS)
    register_feedback_tools(mcp)
    logger.info(f"md-feedback MCP server {__version__} ready")
    return mcp


def main():
    """CLI entry point: parse args, create server, run over stdio."""
    parser = build_parser()
    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    mcp = create_server(args)
    mcp.run()


if __name__ == "__main__":
    main()
