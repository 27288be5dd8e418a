#!/usr/bin/env python
"""Main entry point for the Noteflow MCP server."""
import argparse
import atexit
import logging
import os
import sys
from pathlib import Path

from noteflow.config import config
from noteflow.observability import configure_logging, metrics
from noteflow.server.mcp_server import NoteflowMcpServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Noteflow MCP Server")
    parser.add_argument(
        "--data-dir",
        help="Directory holding the JSON collection documents",
        type=str,
        default=os.environ.get("NOTEFLOW_DATA_DIR")
    )
    parser.add_argument(
        "--uploads-dir",
        help="Directory for note attachments",
        type=str,
        default=os.environ.get("NOTEFLOW_UPLOADS_DIR")
    )
    parser.add_argument(
        "--task-uploads-dir",
        help="Directory for task attachments",
        type=str,
        default=os.environ.get("NOTEFLOW_TASK_UPLOADS_DIR")
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for rotating log files",
        type=str,
        default=os.environ.get("NOTEFLOW_LOG_DIR")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTEFLOW_LOG_LEVEL", "INFO")
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.data_dir:
        config.data_dir = Path(args.data_dir)
    if args.uploads_dir:
        config.uploads_dir = Path(args.uploads_dir)
    if args.task_uploads_dir:
        config.task_uploads_dir = Path(args.task_uploads_dir)
    if args.log_dir:
        config.log_dir = Path(args.log_dir)
    config.log_level = args.log_level


def _save_metrics_on_exit():
    """Save metrics to disk on server shutdown."""
    if metrics.save_metrics():
        logging.getLogger(__name__).info("Metrics saved to disk on shutdown")


def main(argv=None):
    """Run the Noteflow MCP server."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(config.log_dir, level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    atexit.register(_save_metrics_on_exit)

    data_dir = config.get_absolute_path(config.data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Using data directory: {data_dir}")

    try:
        logger.info("Starting Noteflow MCP server")
        server = NoteflowMcpServer()
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
