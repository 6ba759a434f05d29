import logging
from dataclasses import dataclass, field

from errors import PreconditionViolation, ServiceError
from jobs import fetch_inventory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ArchiveFailure:
    archive_id: str
    error: Exception


@dataclass
class EmptyVaultResult:
    """Outcome of one empty_vault run."""

    vault_name: str
    job_id: str
    inventory: object
    deleted: list = field(default_factory=list)
    already_absent: list = field(default_factory=list)
    failures: list = field(default_factory=list)

    @property
    def attempted(self):
        return len(self.deleted) + len(self.already_absent) + len(self.failures)

    @property
    def succeeded(self):
        return len(self.deleted) + len(self.already_absent)

    @property
    def failed(self):
        return len(self.failures)

    @property
    def failed_archive_ids(self):
        return [failure.archive_id for failure in self.failures]

    @property
    def vault_eligible_for_deletion(self):
        return self.inventory.is_empty

    @property
    def all_deleted(self):
        return self.attempted == len(self.inventory.archives) and not self.failures


def empty_vault(glacier, account_id, vault_name, job_id):
    """
    Deletes every archive listed by a completed inventory job.

    Archives are deleted one at a time in inventory order. A failed delete is
    recorded and the loop moves on; an archive Glacier no longer has counts
    as deleted. The vault itself is never deleted here, see delete_vault.

    :param glacier: A GlacierWrapper.
    :param account_id: The account that owns the vault.
    :param vault_name: The vault to empty.
    :param job_id: A completed inventory-retrieval job for the vault.
    :return: An EmptyVaultResult.
    """
    inventory = fetch_inventory(glacier, account_id, vault_name, job_id)
    result = EmptyVaultResult(vault_name=vault_name, job_id=job_id, inventory=inventory)

    if inventory.is_empty:
        logger.info("No archives to delete; vault %s can be deleted.", vault_name)
        return result

    logger.info("%d archives to delete from vault %s.",
                len(inventory.archives), vault_name)
    for archive in inventory.archives:
        try:
            glacier.delete_archive(account_id, vault_name, archive.archive_id)
        except ServiceError as err:
            if err.is_not_found:
                result.already_absent.append(archive.archive_id)
                continue
            logger.error("Error deleting archive %s: %s", archive.archive_id, err)
            result.failures.append(ArchiveFailure(archive.archive_id, err))
        else:
            result.deleted.append(archive.archive_id)

    logger.info("Vault %s: %d attempted, %d succeeded, %d failed.",
                vault_name, result.attempted, result.succeeded, result.failed)
    return result


def delete_vault(glacier, account_id, vault_name, result, confirmed=False):
    """
    Deletes a vault whose known inventory is empty.

    :param glacier: A GlacierWrapper.
    :param account_id: The account that owns the vault.
    :param vault_name: The vault to delete.
    :param result: The EmptyVaultResult that established the vault is empty.
    :param confirmed: Whether the operator confirmed the deletion.
    """
    if result.vault_name != vault_name:
        raise PreconditionViolation(
            f"Inventory is for vault {result.vault_name}, not {vault_name}.")
    if not result.vault_eligible_for_deletion:
        raise PreconditionViolation(
            f"Vault {vault_name} still lists {len(result.inventory.archives)} "
            f"archives in its inventory; refusing to delete it.")
    if not confirmed:
        raise PreconditionViolation(
            f"Deleting vault {vault_name} needs confirmation.")
    glacier.delete_vault(account_id, vault_name)
