"""Sequential batch renaming of the images in one directory."""

import asyncio
import base64
import shutil
from pathlib import Path
from typing import Protocol

from loguru import logger

from image_renamer.filename import create_file_name
from image_renamer.keywords import SleepFunc
from image_renamer.models import ProcessingReport


IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")
DELETED_DIR_NAME = "deleted"

STATUS_EMPTY_FILE = "Skipped: File is empty"
STATUS_UNREADABLE = "Skipped: Could not read image data"
STATUS_NO_KEYWORDS = "Skipped: No keywords generated"
STATUS_INVALID_NAME = "Skipped: Could not generate valid filename"
STATUS_TARGET_EXISTS = "Skipped: Target file already exists"
STATUS_ARCHIVED = "Success: Copied with new name, original moved to deleted folder"
STATUS_COPIED_ONLY = "Success: Copied with new name, original left in place ({reason})"


class ImageRenamerError(Exception):
    """Base exception for image renamer failures."""


class DirectoryAccessError(ImageRenamerError):
    """Raised when the source directory cannot be used for a batch run."""


class KeywordSource(Protocol):
    """Anything that can turn base64 image data into keywords."""

    async def extract(self, image_b64: str, filename: str) -> list[str]:
        """Return keywords for the image, or an empty list."""
        ...


def is_image_file(name: str) -> bool:
    """Return True for names ending in a supported image extension (case insensitive)."""
    return name.lower().endswith(IMAGE_EXTENSIONS)


def list_image_files(source_dir: Path) -> list[Path]:
    """List regular image files directly under ``source_dir`` in enumeration order."""
    return [
        entry
        for entry in source_dir.iterdir()
        if entry.is_file() and is_image_file(entry.name)
    ]


def file_extension(name: str) -> str:
    """Return the text after the last dot, case preserved."""
    return name.rsplit(".", 1)[-1]


def _prepare_directories(source_dir: Path, output_dir: Path) -> Path:
    if not source_dir.is_dir():
        msg = f"Source path does not exist or is not a directory: {source_dir}"
        raise DirectoryAccessError(msg)

    output_dir.mkdir(parents=True, exist_ok=True)
    logger.info("output_directory_ready", path=str(output_dir))

    deleted_dir = source_dir / DELETED_DIR_NAME
    deleted_dir.mkdir(exist_ok=True)
    logger.debug("deleted_directory_ready", path=str(deleted_dir))
    return deleted_dir


def _archive_original(source_file: Path, deleted_dir: Path) -> None:
    target = deleted_dir / source_file.name
    if target.exists():
        msg = f"{target} already exists"
        raise FileExistsError(msg)
    source_file.rename(target)


class BatchProcessor:
    """Rename-copy every image in a directory using model-generated keywords."""

    def __init__(
        self,
        extractor: KeywordSource,
        *,
        pacing_delay_seconds: float = 3.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Store the keyword source and pacing policy.

        Args:
            extractor: Keyword source called once per image.
            pacing_delay_seconds: Fixed wait after each file that contacted the extractor.
            sleep: Coroutine used for the pacing wait.

        """
        self._extractor = extractor
        self._pacing_delay = pacing_delay_seconds
        self._sleep = sleep

    async def process_directory(
        self,
        source_path: str | Path,
        output_path: str | Path,
    ) -> ProcessingReport:
        """
        Process every image directly under ``source_path``, one at a time.

        Each image is copied to ``output_path`` under a keyword-derived name and the
        original is moved into ``source_path/deleted``. Existing files are never
        overwritten. Per-file problems are recorded and the loop moves on; only
        directory-level problems end the run early, leaving a single entry in ``errors``.

        Args:
            source_path: Directory to scan (relative paths resolve against the cwd).
            output_path: Directory receiving the renamed copies; created if missing.

        Returns:
            The report for this run.

        """
        report = ProcessingReport()
        logger.info("batch_started", source=str(source_path), output=str(output_path))

        try:
            source_dir = Path(source_path).resolve()
            output_dir = Path(output_path).resolve()
            deleted_dir = _prepare_directories(source_dir, output_dir)
            image_files = list_image_files(source_dir)
        except Exception as exc:
            logger.error("directory_access_failed", source=str(source_path), error=str(exc))
            report.errors.append(f"Error accessing directory: {exc}")
            return report

        logger.info("image_files_discovered", count=len(image_files))
        for idx, image_file in enumerate(image_files, start=1):
            contacted_api = False
            try:
                contacted_api = await self._process_file(
                    image_file,
                    output_dir,
                    deleted_dir,
                    report,
                    index=f"{idx}/{len(image_files)}",
                )
            except Exception as exc:
                logger.exception("file_processing_failed", file=image_file.name)
                report.record_skip(
                    image_file.name,
                    f"Error: {exc}",
                    error=f"Error processing {image_file.name}: {exc}",
                )

            if contacted_api:
                logger.debug("pacing_delay", seconds=self._pacing_delay)
                await self._sleep(self._pacing_delay)

        logger.info(
            "processing_complete",
            processed=report.processed_count,
            skipped=report.skipped_count,
            errors=len(report.errors),
        )
        return report

    async def _process_file(
        self,
        image_file: Path,
        output_dir: Path,
        deleted_dir: Path,
        report: ProcessingReport,
        *,
        index: str,
    ) -> bool:
        """Handle one file and return True once the extractor has been called."""
        name = image_file.name
        with logger.contextualize(file=name, index=index):
            size = image_file.stat().st_size
            if size == 0:
                logger.warning("file_empty")
                report.record_skip(name, STATUS_EMPTY_FILE)
                return False
            logger.info("processing_file", size_bytes=size)

            image_b64 = base64.b64encode(image_file.read_bytes()).decode("ascii")
            if not image_b64:
                logger.warning("file_unreadable")
                report.record_skip(name, STATUS_UNREADABLE)
                return False

            keywords = await self._extractor.extract(image_b64, name)
            if not keywords:
                logger.warning("no_keywords_generated")
                report.record_skip(name, STATUS_NO_KEYWORDS)
                return True
            logger.info("keywords_generated", keywords=keywords)

            new_name = create_file_name(keywords, file_extension(name))
            if not new_name or new_name == name:
                logger.warning("invalid_filename_generated", new_filename=new_name)
                report.record_skip(name, STATUS_INVALID_NAME)
                return True

            target = output_dir / new_name
            if target.exists():
                logger.warning("target_exists", target=str(target))
                report.record_skip(name, STATUS_TARGET_EXISTS, new_filename=new_name)
                return True

            try:
                shutil.copy2(image_file, target)
            except OSError as exc:
                logger.error("file_copy_failed", target=str(target), error=str(exc))
                report.record_skip(
                    name,
                    f"Error: {exc}",
                    error=f"Failed to copy {name}: {exc}",
                )
                return True
            logger.info("file_copied", target=str(target))

            try:
                _archive_original(image_file, deleted_dir)
            except OSError as exc:
                logger.warning("archive_original_failed", error=str(exc))
                report.record_success(name, new_name, STATUS_COPIED_ONLY.format(reason=exc))
            else:
                logger.info("original_archived", deleted_dir=str(deleted_dir))
                report.record_success(name, new_name, STATUS_ARCHIVED)
            return True
