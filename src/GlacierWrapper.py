import logging

from botocore.exceptions import BotoCoreError, ClientError

from errors import ServiceError

logger = logging.getLogger(__name__)

INVENTORY_JOB_TYPE = "inventory-retrieval"


class GlacierWrapper:
    """Encapsulates the Amazon S3 Glacier client calls used to empty a vault."""

    def __init__(self, glacier_client):
        """
        :param glacier_client: A region-scoped Boto3 Amazon S3 Glacier client.
        """
        self.glacier_client = glacier_client

    def list_vaults(self, account_id):
        """
        Lists the vaults of an account in the client's region.

        :param account_id: The account that owns the vaults.
        :return: The vault descriptions, in the order Glacier returns them.
        """
        vaults = []
        try:
            paginator = self.glacier_client.get_paginator("list_vaults")
            for page in paginator.paginate(accountId=account_id):
                vaults.extend(page.get("VaultList", []))
        except (ClientError, BotoCoreError) as err:
            logger.exception("Couldn't list vaults for account %s.", account_id)
            raise ServiceError("ListVaults", err) from err
        logger.info("Got %d vaults for account %s.", len(vaults), account_id)
        return vaults

    def list_jobs(self, account_id, vault_name):
        """
        Lists every job Glacier still tracks for a vault.

        :param account_id: The account that owns the vault.
        :param vault_name: The vault to query.
        :return: The raw job descriptions of all pages.
        """
        jobs = []
        try:
            paginator = self.glacier_client.get_paginator("list_jobs")
            for page in paginator.paginate(accountId=account_id, vaultName=vault_name):
                jobs.extend(page.get("JobList", []))
        except (ClientError, BotoCoreError) as err:
            logger.exception("Couldn't list jobs for vault %s.", vault_name)
            raise ServiceError("ListJobs", err) from err
        logger.debug("Got %d jobs for vault %s.", len(jobs), vault_name)
        return jobs

    def initiate_inventory_job(self, account_id, vault_name):
        """
        Starts an inventory-retrieval job that lists every archive in a vault.

        :param account_id: The account that owns the vault.
        :param vault_name: The vault to inventory.
        :return: The job id Glacier assigned.
        """
        try:
            response = self.glacier_client.initiate_job(
                accountId=account_id,
                vaultName=vault_name,
                jobParameters={"Type": INVENTORY_JOB_TYPE, "Format": "JSON"},
            )
        except (ClientError, BotoCoreError) as err:
            logger.exception(
                "Couldn't start an inventory job for vault %s.", vault_name)
            raise ServiceError("InitiateJob", err) from err
        job_id = response["jobId"]
        logger.info("Started inventory job %s for vault %s.", job_id, vault_name)
        return job_id

    def describe_job(self, account_id, vault_name, job_id):
        try:
            response = self.glacier_client.describe_job(
                accountId=account_id, vaultName=vault_name, jobId=job_id
            )
        except (ClientError, BotoCoreError) as err:
            logger.exception("Couldn't describe job %s.", job_id)
            raise ServiceError("DescribeJob", err) from err
        response.pop("ResponseMetadata", None)
        return response

    def get_job_output(self, account_id, vault_name, job_id):
        """
        Gets the output of a completed job.

        :param account_id: The account that owns the vault.
        :param vault_name: The vault the job belongs to.
        :param job_id: The job to get output from.
        :return: The job output, in bytes.
        """
        try:
            response = self.glacier_client.get_job_output(
                accountId=account_id, vaultName=vault_name, jobId=job_id
            )
            out_bytes = response["body"].read()
        except (ClientError, BotoCoreError) as err:
            logger.exception("Couldn't get output for job %s.", job_id)
            raise ServiceError("GetJobOutput", err) from err
        logger.info("Read %s bytes from job %s.", len(out_bytes), job_id)
        return out_bytes

    def delete_archive(self, account_id, vault_name, archive_id):
        """
        Deletes an archive from a vault.

        :param account_id: The account that owns the vault.
        :param vault_name: The vault holding the archive.
        :param archive_id: The archive to delete.
        """
        try:
            self.glacier_client.delete_archive(
                accountId=account_id, vaultName=vault_name, archiveId=archive_id
            )
        except (ClientError, BotoCoreError) as err:
            error = ServiceError("DeleteArchive", err)
            if error.is_not_found:
                logger.warning("Archive %s is not in vault %s.", archive_id, vault_name)
            else:
                logger.exception("Couldn't delete archive %s.", archive_id)
            raise error from err
        logger.info("Deleted archive %s from vault %s.", archive_id, vault_name)

    def delete_vault(self, account_id, vault_name):
        """
        Deletes a vault. Glacier refuses when its last inventory lists archives.

        :param account_id: The account that owns the vault.
        :param vault_name: The vault to delete.
        """
        try:
            self.glacier_client.delete_vault(
                accountId=account_id, vaultName=vault_name)
        except (ClientError, BotoCoreError) as err:
            logger.exception("Couldn't delete vault %s.", vault_name)
            raise ServiceError("DeleteVault", err) from err
        logger.info("Deleted vault %s.", vault_name)
