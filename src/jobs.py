"""
Inventory-retrieval job lifecycle: read the job registry, start a job,
check on it, and fetch its inventory once it is done.

Nothing here waits. A job that is still running is reported as such and
the caller checks again later.
"""
import logging

from errors import PreconditionViolation
from inventory import parse_inventory, parse_job

logger = logging.getLogger(__name__)


def list_jobs(glacier, account_id, vault_name):
    """
    Lists the retrieval jobs of a vault, oldest first.

    :param glacier: A GlacierWrapper.
    :param account_id: The account that owns the vault.
    :param vault_name: The vault to query.
    :return: The jobs sorted by creation time; empty when the vault has none.
    """
    jobs = [
        parse_job(description, account_id, vault_name)
        for description in glacier.list_jobs(account_id, vault_name)
    ]
    if not jobs:
        logger.info("No existing jobs for vault %s in account %s.",
                    vault_name, account_id)
    return sorted(jobs, key=lambda job: job.creation_time)


def most_recent(jobs):
    """
    Returns the job with the latest creation time. Ties go to the job that
    comes first in ``jobs``.
    """
    latest = None
    for job in jobs:
        if latest is None or job.creation_time > latest.creation_time:
            latest = job
    if latest is None:
        raise ValueError("most_recent() needs at least one job")
    return latest


def usable_job(jobs):
    """
    Picks the job worth following: the most recent inventory retrieval that is
    running or has succeeded.

    :return: The job, or None when no job qualifies.
    """
    candidates = [job for job in jobs if job.is_usable]
    if not candidates:
        return None
    return most_recent(candidates)


def initiate_inventory_retrieval(glacier, account_id, vault_name, jobs=None, force=False):
    """
    Starts a new inventory-retrieval job.

    :param glacier: A GlacierWrapper.
    :param account_id: The account that owns the vault.
    :param vault_name: The vault to inventory.
    :param jobs: The vault's current jobs, from list_jobs. A usable job among
                 them blocks a new one unless ``force`` is set.
    :param force: Start a job even though a usable one exists.
    :return: The new job id.
    """
    existing = usable_job(jobs or [])
    if existing is not None:
        if not force:
            raise PreconditionViolation(
                f"Vault {vault_name} already has inventory job {existing.job_id} "
                f"({existing.status.value}); not starting another one."
            )
        logger.warning("Starting a new inventory job although job %s exists.",
                       existing.job_id)
    return glacier.initiate_inventory_job(account_id, vault_name)


def describe_job(glacier, account_id, vault_name, job_id):
    """
    Checks a job once.

    :return: The RetrievalJob; ``completed`` is False while Glacier is still
             working on it.
    """
    job = parse_job(glacier.describe_job(account_id, vault_name, job_id),
                    account_id, vault_name)
    logger.info("Job %s for vault %s: %s", job_id, vault_name,
                "COMPLETED" if job.completed else "IN PROGRESS")
    return job


def fetch_inventory(glacier, account_id, vault_name, job_id):
    """
    Downloads and decodes the inventory produced by a completed job.

    :param glacier: A GlacierWrapper.
    :param account_id: The account that owns the vault.
    :param vault_name: The vault the job belongs to.
    :param job_id: A completed inventory-retrieval job.
    :return: The VaultInventory.
    :raises PreconditionViolation: If the job is not a succeeded inventory job.
    """
    job = describe_job(glacier, account_id, vault_name, job_id)
    if not job.is_inventory:
        raise PreconditionViolation(
            f"Job {job_id} is an {job.action} job, not an inventory retrieval.")
    if not job.completed:
        raise PreconditionViolation(f"Job {job_id} has not completed yet.")
    if not job.is_fetchable:
        raise PreconditionViolation(
            f"Job {job_id} finished with status {job.status.value}: "
            f"{job.status_message}")

    inventory = parse_inventory(glacier.get_job_output(account_id, vault_name, job_id))
    logger.info("Inventory of %s taken %s lists %d archives.",
                vault_name, inventory.inventory_date.isoformat(),
                len(inventory.archives))
    return inventory
