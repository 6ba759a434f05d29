"""
Vault inventory and retrieval job records.

Everything here is built from Glacier responses and never changed locally.
The inventory payload of a completed inventory-retrieval job looks like::

    {
        "VaultARN": "arn:aws:glacier:us-east-1:012345678901:vaults/examplevault",
        "InventoryDate": "2011-12-12T14:19:01Z",
        "ArchiveList": [
            {
                "ArchiveId": "DMTmICA2n5Tdq...",
                "ArchiveDescription": "my archive1",
                "CreationDate": "2012-05-15T17:19:46.700Z",
                "Size": 2140123,
                "SHA256TreeHash": "6b9d4cf8697bd3af6aa1b590a0b27b337da5b18988dbcc619a3e608a554a1e62"
            }
        ]
    }
"""
import enum
import json
from dataclasses import dataclass
from datetime import datetime, timezone

from errors import ParseError

INVENTORY_RETRIEVAL = "InventoryRetrieval"
ARCHIVE_RETRIEVAL = "ArchiveRetrieval"

MAX_ARCHIVE_SIZE = 2 ** 63 - 1


class JobStatus(enum.Enum):
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


def parse_timestamp(value):
    """
    Parses a Glacier ISO 8601 timestamp such as ``2012-05-15T17:19:46.700Z``.

    Timestamps without an offset are taken to be UTC.

    :param value: The timestamp string.
    :return: A timezone-aware datetime.
    """
    if not isinstance(value, str):
        raise ValueError(f"expected a timestamp string, got {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class RetrievalJob:
    job_id: str
    vault_name: str
    account_id: str
    action: str
    creation_time: datetime
    completed: bool
    status: JobStatus
    status_message: str = None
    completion_time: datetime = None

    @property
    def is_inventory(self):
        return self.action == INVENTORY_RETRIEVAL

    @property
    def is_usable(self):
        """An inventory job that is still running or has output to fetch."""
        return self.is_inventory and self.status in (
            JobStatus.IN_PROGRESS,
            JobStatus.SUCCEEDED,
        )

    @property
    def is_fetchable(self):
        return self.completed and self.status == JobStatus.SUCCEEDED


@dataclass(frozen=True)
class Archive:
    archive_id: str
    description: str
    creation_time: datetime
    size_bytes: int
    content_hash: str


@dataclass(frozen=True)
class VaultInventory:
    vault_arn: str
    inventory_date: datetime
    archives: tuple

    @property
    def is_empty(self):
        return not self.archives

    @property
    def total_size(self):
        return sum(archive.size_bytes for archive in self.archives)


def parse_job(description, account_id, vault_name=None):
    """
    Builds a RetrievalJob from a Glacier job description, as returned by
    ``describe_job`` or as one entry of the ``list_jobs`` JobList.

    :param description: The job description dictionary.
    :param account_id: The account that owns the vault.
    :param vault_name: The vault name, used when the description lacks a
                       VaultARN.
    :return: The RetrievalJob.
    """
    vault_arn = description.get("VaultARN")
    if vault_arn and "vaults/" in vault_arn:
        vault_name = vault_arn.rsplit("vaults/", 1)[1]
    completion = description.get("CompletionDate")
    return RetrievalJob(
        job_id=description["JobId"],
        vault_name=vault_name,
        account_id=account_id,
        action=description.get("Action", INVENTORY_RETRIEVAL),
        creation_time=parse_timestamp(description["CreationDate"]),
        completed=bool(description.get("Completed", False)),
        status=JobStatus(description.get("StatusCode", "InProgress")),
        status_message=description.get("StatusMessage"),
        completion_time=parse_timestamp(completion) if completion else None,
    )


def _require(record, field, kind, where):
    if field not in record:
        raise ParseError(f"{where} is missing required field {field}")
    value = record[field]
    # bool is an int subclass; a JSON true is not a size.
    if not isinstance(value, kind) or isinstance(value, bool):
        raise ParseError(
            f"{where} field {field} should be {kind.__name__}, "
            f"got {type(value).__name__}"
        )
    return value


def _timestamp(record, field, where):
    value = _require(record, field, str, where)
    try:
        return parse_timestamp(value)
    except ValueError as err:
        raise ParseError(f"{where} field {field} is not a timestamp: {value!r}") from err


def _parse_archive(index, record):
    where = f"ArchiveList[{index}]"
    if not isinstance(record, dict):
        raise ParseError(f"{where} should be an object")
    size = _require(record, "Size", int, where)
    if not 0 <= size <= MAX_ARCHIVE_SIZE:
        raise ParseError(f"{where} field Size is out of range: {size}")
    return Archive(
        archive_id=_require(record, "ArchiveId", str, where),
        description=_require(record, "ArchiveDescription", str, where),
        creation_time=_timestamp(record, "CreationDate", where),
        size_bytes=size,
        content_hash=_require(record, "SHA256TreeHash", str, where),
    )


def parse_inventory(payload):
    """
    Decodes the JSON output of an inventory-retrieval job.

    :param payload: The job output, as bytes or text.
    :return: The VaultInventory.
    :raises ParseError: If the payload is not JSON or lacks a required field.
    """
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as err:
            raise ParseError("payload is not UTF-8") from err
    try:
        document = json.loads(payload)
    except json.JSONDecodeError as err:
        raise ParseError(f"payload is not JSON ({err})") from err
    if not isinstance(document, dict):
        raise ParseError("top level should be an object")

    archive_list = _require(document, "ArchiveList", list, "inventory")
    return VaultInventory(
        vault_arn=_require(document, "VaultARN", str, "inventory"),
        inventory_date=_timestamp(document, "InventoryDate", "inventory"),
        archives=tuple(
            _parse_archive(index, record)
            for index, record in enumerate(archive_list)
        ),
    )
