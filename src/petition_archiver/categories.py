"""Record categories moved by the workflow."""

from dataclasses import dataclass

from petition_archiver.config import TablesConfig

INVALID_SIGNATURES = "invalid_signatures"
ORPHANED_VALIDATIONS = "orphaned_validations"
PROCESSED_SIGNATURES = "processed_signatures"
PROCESSED_VALIDATIONS = "processed_validations"


@dataclass(frozen=True)
class RecordCategory:
    """A processing table paired with the archive table it drains into."""

    name: str
    label: str
    processing_table: str
    archive_table: str


def build_categories(tables: TablesConfig) -> dict[str, RecordCategory]:
    """Map category name to its table pair, in workflow order."""
    return {
        INVALID_SIGNATURES: RecordCategory(
            name=INVALID_SIGNATURES,
            label="invalid signatures",
            processing_table=tables.pending_signatures,
            archive_table=tables.not_validated_archive,
        ),
        ORPHANED_VALIDATIONS: RecordCategory(
            name=ORPHANED_VALIDATIONS,
            label="orphaned validations",
            processing_table=tables.validations,
            archive_table=tables.orphaned_validations_archive,
        ),
        PROCESSED_SIGNATURES: RecordCategory(
            name=PROCESSED_SIGNATURES,
            label="processed signatures",
            processing_table=tables.processed_signatures,
            archive_table=tables.processed_signatures_archive,
        ),
        PROCESSED_VALIDATIONS: RecordCategory(
            name=PROCESSED_VALIDATIONS,
            label="processed validations",
            processing_table=tables.processed_validations,
            archive_table=tables.processed_validations_archive,
        ),
    }
