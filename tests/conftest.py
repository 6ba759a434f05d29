import io
import json
import os
from typing import Any, Dict, Iterator, List

import boto3
import pytest
from botocore.response import StreamingBody
from botocore.stub import Stubber
from moto import mock_aws

from GlacierWrapper import GlacierWrapper

ACCOUNT_ID = "-"
VAULT_NAME = "test_vault_name"
VAULT_ARN = f"arn:aws:glacier:us-east-1:123456789012:vaults/{VAULT_NAME}"


@pytest.fixture(autouse=True)
def aws_credentials() -> None:
    """Mocked AWS Credentials for moto"""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def glacier_client(aws_credentials: None) -> Iterator[Any]:
    with mock_aws():
        connection = boto3.client("glacier", region_name="us-east-1")
        connection.create_vault(vaultName=VAULT_NAME)
        yield connection


@pytest.fixture
def stubbed_client(aws_credentials: None) -> Iterator[Any]:
    client = boto3.client("glacier", region_name="us-east-1")
    with Stubber(client) as stubber:
        client.stubber = stubber
        yield client
        stubber.assert_no_pending_responses()


@pytest.fixture
def stubber(stubbed_client: Any) -> Stubber:
    return stubbed_client.stubber


@pytest.fixture
def glacier(stubbed_client: Any) -> GlacierWrapper:
    return GlacierWrapper(stubbed_client)


def job_description(
    job_id: str,
    creation_date: str = "2023-03-03T17:53:45.420Z",
    completed: bool = True,
    status_code: str = "Succeeded",
    action: str = "InventoryRetrieval",
) -> Dict[str, Any]:
    description = {
        "JobId": job_id,
        "Action": action,
        "CreationDate": creation_date,
        "Completed": completed,
        "StatusCode": status_code,
        "VaultARN": VAULT_ARN,
    }
    if completed:
        description["CompletionDate"] = "2023-03-03T21:42:40.684Z"
    if status_code == "Failed":
        description["StatusMessage"] = "Inventory retrieval failed"
    return description


def archive_record(index: int) -> Dict[str, Any]:
    return {
        "ArchiveId": f"test_archive_id_{index}",
        "ArchiveDescription": f"archive {index}",
        "CreationDate": f"2012-05-15T17:19:4{index}.700Z",
        "Size": 2140123 + index,
        "SHA256TreeHash": f"{index:064x}",
    }


def inventory_payload(count: int) -> bytes:
    return json.dumps(
        {
            "VaultARN": VAULT_ARN,
            "InventoryDate": "2023-03-03T21:42:40Z",
            "ArchiveList": [archive_record(i) for i in range(count)],
        }
    ).encode("utf-8")


def streaming_body(payload: bytes) -> StreamingBody:
    return StreamingBody(io.BytesIO(payload), len(payload))


def add_describe(stubber: Stubber, job_id: str, **kwargs: Any) -> None:
    stubber.add_response(
        "describe_job",
        job_description(job_id, **kwargs),
        {"accountId": ACCOUNT_ID, "vaultName": VAULT_NAME, "jobId": job_id},
    )


def add_job_output(stubber: Stubber, job_id: str, payload: bytes) -> None:
    stubber.add_response(
        "get_job_output",
        {"body": streaming_body(payload), "status": 200},
        {"accountId": ACCOUNT_ID, "vaultName": VAULT_NAME, "jobId": job_id},
    )


def add_delete_archives(
    stubber: Stubber, archive_ids: List[str], errors: Dict[str, str] = None
) -> None:
    errors = errors or {}
    for archive_id in archive_ids:
        expected = {
            "accountId": ACCOUNT_ID,
            "vaultName": VAULT_NAME,
            "archiveId": archive_id,
        }
        if archive_id in errors:
            stubber.add_client_error(
                "delete_archive",
                service_error_code=errors[archive_id],
                http_status_code=404
                if errors[archive_id] == "ResourceNotFoundException"
                else 400,
                expected_params=expected,
            )
        else:
            stubber.add_response("delete_archive", {}, expected)
