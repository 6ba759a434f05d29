import argparse
import logging
import os
import sys
import time

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from delete import delete_vault, empty_vault
from errors import ParseError, PreconditionViolation, ServiceError
from GlacierWrapper import GlacierWrapper
from jobs import describe_job, initiate_inventory_retrieval, list_jobs, usable_job
from lifecycle import VaultState, check_transition, state_for_job

# Set up logging
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_PARTIAL = 2
EXIT_SERVICE = 3


def setup_logging(debug=False, log_file=None):
    """Configure logging to output to both file and console."""
    log_level = logging.DEBUG if debug else logging.INFO

    console_formatter = logging.Formatter('%(message)s')
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(console_formatter)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if log_file is None:
        timestamp = time.strftime('%Y%m%d-%H%M%S')
        log_file = f'thaw_{timestamp}.log'

    log_dir = os.path.dirname(log_file)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(file_formatter)
    file_handler.setLevel(log_level)
    root_logger.addHandler(file_handler)

    logger.debug("Logging initialized: console and file (%s)", log_file)


def load_aws_credentials():
    """
    Load AWS credentials from environment variables or .env file.
    Returns True if credentials are found, False otherwise.
    """
    env_file = os.path.join(os.path.dirname(os.path.abspath(__file__)), '.env')
    if os.path.exists(env_file):
        logger.debug("Loading .env file from: %s", env_file)
        load_dotenv(env_file)
    else:
        logger.debug("No .env file found at: %s", env_file)

    if os.getenv('AWS_PROFILE'):
        logger.debug("Using AWS profile %s", os.getenv('AWS_PROFILE'))
        return True

    required_vars = ['AWS_ACCESS_KEY_ID', 'AWS_SECRET_ACCESS_KEY']
    for var in required_vars + ['AWS_SESSION_TOKEN', 'AWS_DEFAULT_REGION']:
        value = os.getenv(var)
        if value:
            logger.debug("%s is set (length: %d)", var, len(value))
        else:
            logger.debug("%s is not set", var)

    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        logger.error("Missing required AWS credentials: %s",
                     ', '.join(missing_vars))
        logger.error("Set them in your environment or .env file, or set AWS_PROFILE")
        return False
    return True


def resolve_account_id(session, account_id=None):
    """Use the given account id, else THAW_ACCOUNT_ID, else ask STS."""
    account_id = account_id or os.getenv('THAW_ACCOUNT_ID')
    if account_id:
        return account_id
    try:
        identity = session.client('sts').get_caller_identity()
    except (ClientError, BotoCoreError) as err:
        logger.exception("Couldn't look up the caller's account id.")
        raise ServiceError("GetCallerIdentity", err) from err
    logger.debug("Resolved account id %s from STS", identity['Account'])
    return identity['Account']


def make_glacier_client(session, max_attempts=3):
    config = Config(retries={'max_attempts': max_attempts, 'mode': 'standard'})
    return session.client('glacier', config=config)


class VaultDecommission:
    """Moves one vault towards deletion as far as Glacier allows right now."""

    def __init__(self, glacier, account_id, vault_name):
        """
        :param glacier: A GlacierWrapper for the vault's region.
        :param account_id: The account that owns the vault.
        :param vault_name: The vault to decommission.
        """
        self.glacier = glacier
        self.account_id = account_id
        self.vault_name = vault_name
        self.state = VaultState.NO_JOB
        self.jobs = []
        self.result = None

    def _move(self, target):
        self.state = check_transition(self.state, target)
        logger.debug("Vault %s is now: %s", self.vault_name, self.state.value)

    def check_jobs(self):
        """Read the job registry and pick the job to follow, if any."""
        self.jobs = list_jobs(self.glacier, self.account_id, self.vault_name)
        return usable_job(self.jobs)

    def show_jobs(self):
        logger.info("Jobs for vault %s:", self.vault_name)
        if not self.jobs:
            logger.info("  (none)")
        for job in self.jobs:
            logger.info("  %s  %s  %s  %s", job.creation_time.isoformat(),
                        job.action, job.status.value, job.job_id)

    def start_inventory(self, force=False):
        job_id = initiate_inventory_retrieval(
            self.glacier, self.account_id, self.vault_name,
            jobs=self.jobs, force=force)
        self._move(VaultState.JOB_PENDING)
        logger.info("Inventory job %s started. Glacier usually takes several "
                    "hours; run again with --job-id %s to check on it.",
                    job_id, job_id)
        return job_id

    def check_job(self, job_id):
        job = describe_job(self.glacier, self.account_id, self.vault_name, job_id)
        self.state = state_for_job(job)
        if self.state == VaultState.JOB_PENDING:
            logger.info("Vault retrieval in progress; try again later.")
        elif self.state == VaultState.JOB_FAILED:
            logger.warning("Job %s failed: %s. Start a new one with --initiate.",
                           job_id, job.status_message)
        return job

    def empty(self, job_id):
        result = empty_vault(self.glacier, self.account_id, self.vault_name, job_id)
        self._move(VaultState.INVENTORY_KNOWN)
        self.result = result
        if result.vault_eligible_for_deletion:
            self._move(VaultState.VAULT_EMPTY)
            return result

        self._move(VaultState.VAULT_NON_EMPTY)
        self._move(VaultState.ARCHIVES_DELETING)
        if result.failures:
            logger.error("%d archives could not be deleted; run again with "
                         "--empty to retry: %s", result.failed,
                         ', '.join(result.failed_archive_ids))
        if result.all_deleted:
            self._move(VaultState.VAULT_EMPTY)
            logger.info("All archives deleted. Glacier lists the vault as empty "
                        "only in a later inventory; start a new inventory job "
                        "before deleting the vault.")
        return result

    def delete(self, confirmed):
        delete_vault(self.glacier, self.account_id, self.vault_name,
                     self.result, confirmed=confirmed)
        self._move(VaultState.VAULT_DELETED)

    def run(self, job_id=None, initiate=False, force_new_job=False,
            empty=False, delete=False, confirm=None, show_status=False):
        """
        Take the vault as far as it can go in one run.

        :param job_id: Follow this job instead of reading the registry.
        :param initiate: Start an inventory job when none is usable.
        :param force_new_job: Start one even though a usable job exists.
        :param empty: Delete the archives of a completed inventory.
        :param delete: Delete the vault when its inventory is empty.
        :param confirm: Callable returning True once the operator agrees to
                        delete the vault.
        :param show_status: Log the job history.
        :return: The state the vault was left in.
        """
        if job_id is None:
            job = self.check_jobs()
            if show_status:
                self.show_jobs()
            if initiate:
                self.start_inventory(force=force_new_job)
                return self.state
            if job is None:
                logger.info("No usable inventory job for vault %s; "
                            "run with --initiate to start one.", self.vault_name)
                return self.state
            job_id = job.job_id
            logger.info("Following inventory job %s", job_id)
        elif initiate:
            raise PreconditionViolation("--initiate cannot be combined with --job-id.")

        self.check_job(job_id)
        if self.state != VaultState.JOB_COMPLETED:
            return self.state
        logger.info("Vault retrieval complete")
        if not empty:
            logger.info("Run with --empty to delete the archives it lists.")
            return self.state

        self.empty(job_id)
        if self.state != VaultState.VAULT_EMPTY or not self.result.vault_eligible_for_deletion:
            return self.state
        if not delete:
            logger.info("Vault %s is empty; run with --delete-vault to delete it.",
                        self.vault_name)
            return self.state

        confirmed = bool(confirm and confirm(self.vault_name))
        if not confirmed:
            logger.info("Skipping deletion of vault %s", self.vault_name)
            return self.state
        self.delete(confirmed)
        return self.state


def ask_confirmation(vault_name):
    answer = input(f"Delete vault {vault_name}? Type the vault name to confirm: ")
    return answer.strip() == vault_name


def show_vaults(glacier, account_id):
    vaults = glacier.list_vaults(account_id)
    if not vaults:
        logger.info("No vaults found; try a different account or region.")
    for vault in vaults:
        logger.info("%s  archives: %s  bytes: %s", vault['VaultName'],
                    vault.get('NumberOfArchives', 0), vault.get('SizeInBytes', 0))
    return vaults


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description='Empty and delete an Amazon S3 Glacier vault')
    parser.add_argument('--vault', help='Name of the vault to decommission')
    parser.add_argument('--account-id',
                        help='Account that owns the vault (default: THAW_ACCOUNT_ID or the caller)')
    parser.add_argument('--region', help='Region of the vault (default: AWS_DEFAULT_REGION)')
    parser.add_argument('--job-id', help='Follow this inventory job')
    parser.add_argument('--initiate', action='store_true',
                        help='Start an inventory job if none is usable')
    parser.add_argument('--force-new-job', action='store_true',
                        help='With --initiate, start a job even if a usable one exists')
    parser.add_argument('--empty', action='store_true',
                        help='Delete every archive listed by the completed inventory')
    parser.add_argument('--delete-vault', action='store_true',
                        help='Delete the vault when its inventory is empty')
    parser.add_argument('--yes', action='store_true',
                        help='Do not ask before deleting the vault')
    parser.add_argument('--list-vaults', action='store_true',
                        help='List the vaults in the account and region')
    parser.add_argument('--status', action='store_true',
                        help='Show the vault\'s job history')
    parser.add_argument('--max-attempts', type=int,
                        default=int(os.getenv('THAW_MAX_ATTEMPTS', '3')),
                        help='Attempts per Glacier request (default: 3)')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--log-file', help='Path to log file')
    args = parser.parse_args(argv)
    if not args.vault and not args.list_vaults:
        parser.error('--vault is required unless --list-vaults is given')
    return args


def main(argv=None):
    """Main execution function."""
    args = parse_args(argv)
    setup_logging(args.debug, args.log_file)

    if not load_aws_credentials():
        logger.error("Failed to load AWS credentials")
        return EXIT_USAGE

    region_name = args.region or os.getenv('AWS_DEFAULT_REGION', 'us-east-1')
    try:
        session = boto3.Session(region_name=region_name)
        glacier = GlacierWrapper(make_glacier_client(session, args.max_attempts))
        account_id = resolve_account_id(session, args.account_id)
        logger.debug("Account %s, region %s", account_id, region_name)

        if args.list_vaults:
            show_vaults(glacier, account_id)
            if not args.vault:
                return EXIT_OK

        decommission = VaultDecommission(glacier, account_id, args.vault)
        confirm = (lambda name: True) if args.yes else ask_confirmation
        state = decommission.run(
            job_id=args.job_id,
            initiate=args.initiate,
            force_new_job=args.force_new_job,
            empty=args.empty,
            delete=args.delete_vault,
            confirm=confirm,
            show_status=args.status,
        )
    except (PreconditionViolation, ParseError) as e:
        logger.error("%s", e)
        return EXIT_USAGE
    except ServiceError as e:
        logger.error("An error occurred: %s", e)
        if args.debug:
            logger.exception("Detailed error information:")
        return EXIT_SERVICE

    logger.info("Vault %s: %s", args.vault, state.value)
    if decommission.result is not None and decommission.result.failed:
        return EXIT_PARTIAL
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
