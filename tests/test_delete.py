from typing import Any
from unittest.mock import MagicMock

import pytest
from botocore.stub import Stubber

from conftest import (
    ACCOUNT_ID,
    VAULT_NAME,
    add_delete_archives,
    add_describe,
    add_job_output,
    inventory_payload,
)
from delete import EmptyVaultResult, delete_vault, empty_vault
from errors import ParseError, PreconditionViolation, ServiceError
from GlacierWrapper import GlacierWrapper
from inventory import parse_inventory


def archive_ids(count: int) -> list:
    return [f"test_archive_id_{i}" for i in range(count)]


def test_empty_inventory_is_eligible_for_deletion(
    glacier: GlacierWrapper, stubber: Stubber
) -> None:
    add_describe(stubber, "J2")
    add_job_output(stubber, "J2", inventory_payload(0))

    result = empty_vault(glacier, ACCOUNT_ID, VAULT_NAME, "J2")

    assert result.attempted == 0
    assert result.succeeded == 0
    assert result.failed == 0
    assert result.vault_eligible_for_deletion

    stubber.add_response(
        "delete_vault", {}, {"accountId": ACCOUNT_ID, "vaultName": VAULT_NAME}
    )
    delete_vault(glacier, ACCOUNT_ID, VAULT_NAME, result, confirmed=True)


@pytest.mark.parametrize("count", [1, 5])
def test_one_delete_per_archive(glacier: GlacierWrapper, stubber: Stubber, count: int) -> None:
    add_describe(stubber, "J3")
    add_job_output(stubber, "J3", inventory_payload(count))
    add_delete_archives(stubber, archive_ids(count))

    result = empty_vault(glacier, ACCOUNT_ID, VAULT_NAME, "J3")

    assert result.attempted == count
    assert result.succeeded == count
    assert result.deleted == archive_ids(count)
    assert result.all_deleted
    assert not result.vault_eligible_for_deletion


def test_failed_delete_does_not_stop_the_batch(
    glacier: GlacierWrapper, stubber: Stubber
) -> None:
    add_describe(stubber, "J3")
    add_job_output(stubber, "J3", inventory_payload(2))
    add_delete_archives(
        stubber, archive_ids(2), errors={"test_archive_id_0": "InvalidParameterValueException"}
    )

    result = empty_vault(glacier, ACCOUNT_ID, VAULT_NAME, "J3")

    assert (result.attempted, result.succeeded, result.failed) == (2, 1, 1)
    assert result.failed_archive_ids == ["test_archive_id_0"]
    assert isinstance(result.failures[0].error, ServiceError)
    assert result.failures[0].error.code == "InvalidParameterValueException"
    assert result.deleted == ["test_archive_id_1"]
    assert not result.all_deleted


def test_missing_archive_counts_as_deleted(glacier: GlacierWrapper, stubber: Stubber) -> None:
    add_describe(stubber, "J3")
    add_job_output(stubber, "J3", inventory_payload(3))
    add_delete_archives(
        stubber, archive_ids(3), errors={"test_archive_id_1": "ResourceNotFoundException"}
    )

    result = empty_vault(glacier, ACCOUNT_ID, VAULT_NAME, "J3")

    assert (result.attempted, result.succeeded, result.failed) == (3, 3, 0)
    assert result.already_absent == ["test_archive_id_1"]
    assert result.all_deleted


def test_never_deletes_vault_with_archives() -> None:
    glacier = MagicMock(spec=GlacierWrapper)
    glacier.describe_job.return_value = {
        "JobId": "J3",
        "Action": "InventoryRetrieval",
        "CreationDate": "2023-03-03T17:53:45.420Z",
        "Completed": True,
        "StatusCode": "Succeeded",
    }
    glacier.get_job_output.return_value = inventory_payload(2)

    result = empty_vault(glacier, ACCOUNT_ID, VAULT_NAME, "J3")

    assert glacier.delete_archive.call_count == 2
    glacier.delete_vault.assert_not_called()
    with pytest.raises(PreconditionViolation, match="2 archives"):
        delete_vault(glacier, ACCOUNT_ID, VAULT_NAME, result, confirmed=True)
    glacier.delete_vault.assert_not_called()


def test_malformed_inventory_deletes_nothing() -> None:
    glacier = MagicMock(spec=GlacierWrapper)
    glacier.describe_job.return_value = {
        "JobId": "J3",
        "Action": "InventoryRetrieval",
        "CreationDate": "2023-03-03T17:53:45.420Z",
        "Completed": True,
        "StatusCode": "Succeeded",
    }
    glacier.get_job_output.return_value = b'{"VaultARN": "arn", "InventoryDate": "2023-03-03T21:42:40Z"}'

    with pytest.raises(ParseError):
        empty_vault(glacier, ACCOUNT_ID, VAULT_NAME, "J3")
    glacier.delete_archive.assert_not_called()
    glacier.delete_vault.assert_not_called()


def test_delete_vault_needs_confirmation() -> None:
    glacier = MagicMock(spec=GlacierWrapper)
    result = EmptyVaultResult(VAULT_NAME, "J2", parse_inventory(inventory_payload(0)))

    with pytest.raises(PreconditionViolation, match="confirmation"):
        delete_vault(glacier, ACCOUNT_ID, VAULT_NAME, result, confirmed=False)
    glacier.delete_vault.assert_not_called()


def test_delete_vault_checks_the_vault_name() -> None:
    glacier = MagicMock(spec=GlacierWrapper)
    result = EmptyVaultResult("other_vault", "J2", parse_inventory(inventory_payload(0)))

    with pytest.raises(PreconditionViolation, match="other_vault"):
        delete_vault(glacier, ACCOUNT_ID, VAULT_NAME, result, confirmed=True)
    glacier.delete_vault.assert_not_called()


def test_delete_empty_vault_with_moto(glacier_client: Any) -> None:
    glacier = GlacierWrapper(glacier_client)
    result = EmptyVaultResult(VAULT_NAME, "J2", parse_inventory(inventory_payload(0)))

    delete_vault(glacier, ACCOUNT_ID, VAULT_NAME, result, confirmed=True)

    assert glacier.list_vaults(ACCOUNT_ID) == []
