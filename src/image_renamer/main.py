#!/usr/bin/env python3
"""
Image Renamer: rename photos after keywords generated by a vision-language model.

Each image is sent to Google Gemini, the returned keywords become the new filename, the
image is copied into the output folder under that name and the original is moved into a
``deleted`` folder next to it. Existing files are never overwritten.

Two front-ends share the same batch logic:
 - ``image-renamer`` (default command) processes the current directory.
 - ``image-renamer serve`` starts a small web UI for picking source and output folders.

Requirements:
 - GOOGLE_API_KEY set in the environment or in a ``.env.local`` file.

"""

import asyncio
import socket
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated, Literal

import uvicorn
from cyclopts import App, Parameter, validators
from loguru import logger

from image_renamer import __version__
from image_renamer.config import load_settings
from image_renamer.keywords import KeywordExtractor
from image_renamer.processor import BatchProcessor
from image_renamer.server import create_app


LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "OFF"]

app = App(
    name="image-renamer",
    version=__version__,
)


def setup_logging(
    file_log_level: LogLevel = "DEBUG",
    console_log_level: LogLevel = "INFO",
    log_folder: Path = Path("logs"),
) -> None:
    """
    Configure Loguru for both console and file logging.

    Args:
        file_log_level: Log level for file (use 'OFF' to disable)
        console_log_level: Log level for console (use 'OFF' to disable)
        log_folder: Directory where log files are stored

    """
    logger.remove()

    if file_log_level != "OFF":
        log_folder.mkdir(parents=True, exist_ok=True)
        log_file = log_folder / Path(
            datetime.now(tz=UTC).strftime("%Y%m%d%H%M%S-image_renamer.log"),
        )
        logger.add(
            log_file,
            level=file_log_level,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{name:<8}:{function:<25}:{line:>4} | "
                "{message:<40} | "
                "{extra}"
            ),
            rotation="500 MB",
            retention="10 days",
            compression="zip",
        )

    if console_log_level != "OFF":
        logger.add(
            sys.stderr,
            level=console_log_level,
            colorize=True,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <7}</level> | "
                "<level>{message:<40.50}</level> | "
                "<yellow>{extra}</yellow>"
            ),
        )


def find_free_port(host: str, ports: list[int]) -> int | None:
    """Return the first port in ``ports`` that can be bound on ``host``, or None."""
    for port in ports:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            try:
                sock.bind((host, port))
            except OSError:
                logger.warning("port_in_use", host=host, port=port)
                continue
        return port
    return None


@app.default
def rename(
    source: Annotated[
        Path | None,
        Parameter(
            name=("--source", "-s"),
            validator=validators.Path(exists=True, file_okay=False, dir_okay=True),
            help="Directory with the images to rename (defaults to the current directory)",
        ),
    ] = None,
    output: Annotated[
        Path | None,
        Parameter(
            name=("--output", "-o"),
            help="Directory receiving renamed copies (defaults to the source directory)",
        ),
    ] = None,
    *,
    file_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--file-log-level",
            help="Log level for file (use 'OFF' to disable)",
        ),
    ] = "DEBUG",
    log_folder: Annotated[
        Path,
        Parameter(
            name=("--log-folder",),
            help="Folder where log files are stored",
        ),
    ] = Path("logs"),
    console_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--console-log-level",
            help="Log level for console (use 'OFF' to disable)",
        ),
    ] = "INFO",
) -> None:
    """
    Rename every image in a directory after AI-generated keywords.

    Behavior:
    - Scans the source directory (non-recursive) for .jpg, .jpeg, .png and .webp files.
    - Copies each image into the output directory as <keyword>-<keyword>.<ext>.
    - Moves the original into <source>/deleted once the copy succeeded.
    - Skips files whose new name already exists in the output directory.

    Exit status: returns 1 if settings are missing or any file produced an error.

    Examples:
        image-renamer
        image-renamer --source ./photos --output ./photos/renamed

    """
    setup_logging(
        file_log_level=file_log_level,
        console_log_level=console_log_level,
        log_folder=log_folder,
    )
    source_dir = source or Path.cwd()
    output_dir = output or source_dir
    logger.info("starting_image_renamer", source=str(source_dir), output=str(output_dir))

    settings = load_settings()
    processor = BatchProcessor(
        KeywordExtractor(settings),
        pacing_delay_seconds=settings.pacing_delay_seconds,
    )
    report = asyncio.run(processor.process_directory(source_dir, output_dir))

    logger.info(
        "processing_summary",
        processed=report.processed_count,
        skipped=report.skipped_count,
        errors=len(report.errors),
    )
    for outcome in report.progress:
        logger.info(
            "file_outcome",
            file=outcome.filename,
            new_filename=outcome.new_filename,
            status=outcome.status,
        )
    if report.errors:
        logger.error("batch_errors", errors=report.errors)
        raise SystemExit(1)


@app.command
def serve(
    *,
    host: Annotated[
        str | None,
        Parameter(name=("--host",), help="Interface to bind (defaults to SERVER_HOST)"),
    ] = None,
    port: Annotated[
        int | None,
        Parameter(
            name=("--port", "-p"),
            help="Port to bind; falls back to the configured SERVER_PORTS list when omitted",
        ),
    ] = None,
    file_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--file-log-level",
            help="Log level for file (use 'OFF' to disable)",
        ),
    ] = "DEBUG",
    log_folder: Annotated[
        Path,
        Parameter(
            name=("--log-folder",),
            help="Folder where log files are stored",
        ),
    ] = Path("logs"),
    console_log_level: Annotated[
        LogLevel,
        Parameter(
            name="--console-log-level",
            help="Log level for console (use 'OFF' to disable)",
        ),
    ] = "INFO",
) -> None:
    """
    Start the web UI and the ``/api/process`` endpoint.

    Exit status: returns 1 if settings are missing or no port can be bound.

    Examples:
        image-renamer serve
        image-renamer serve --port 8080

    """
    setup_logging(
        file_log_level=file_log_level,
        console_log_level=console_log_level,
        log_folder=log_folder,
    )
    settings = load_settings()
    bind_host = host or settings.server_host
    candidates = [port] if port is not None else settings.server_ports

    chosen = find_free_port(bind_host, candidates)
    if chosen is None:
        logger.error("no_free_port", host=bind_host, ports=candidates)
        raise SystemExit(1)

    logger.info("server_starting", url=f"http://{bind_host}:{chosen}")
    uvicorn.run(create_app(settings), host=bind_host, port=chosen)


if __name__ == "__main__":
    app()
