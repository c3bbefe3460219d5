"""Pydantic models shared by the batch processor and the HTTP layer."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FileOutcome(_CamelModel):
    """What happened to one source file during a batch run."""

    filename: str
    new_filename: str = ""
    status: str


class ProcessingReport(_CamelModel):
    """Aggregate result of one batch run, serialized with camelCase keys."""

    processed_count: int = 0
    skipped_count: int = 0
    errors: list[str] = Field(default_factory=list)
    progress: list[FileOutcome] = Field(default_factory=list)

    def record_success(self, filename: str, new_filename: str, status: str) -> None:
        """Count a copied file."""
        self.processed_count += 1
        self.progress.append(
            FileOutcome(filename=filename, new_filename=new_filename, status=status),
        )

    def record_skip(
        self,
        filename: str,
        status: str,
        *,
        new_filename: str = "",
        error: str | None = None,
    ) -> None:
        """Count a skipped or failed file; ``error`` also lands in ``errors`` when given."""
        self.skipped_count += 1
        self.progress.append(
            FileOutcome(filename=filename, new_filename=new_filename, status=status),
        )
        if error is not None:
            self.errors.append(error)


class ProcessRequest(_CamelModel):
    """Body of ``POST /api/process``."""

    model_config = ConfigDict(str_strip_whitespace=True)

    source_path: str = Field(min_length=1)
    output_path: str = Field(min_length=1)
