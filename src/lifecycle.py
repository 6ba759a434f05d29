"""
States a vault passes through on its way to deletion.

A run of the tool moves the vault forward as far as it can and stops. The
next run picks up from whatever Glacier reports then.
"""
import enum

from errors import PreconditionViolation
from inventory import JobStatus


class VaultState(enum.Enum):
    NO_JOB = "no job"
    JOB_PENDING = "job pending"
    JOB_FAILED = "job failed"
    JOB_COMPLETED = "job completed"
    INVENTORY_KNOWN = "inventory known"
    VAULT_EMPTY = "vault empty"
    VAULT_NON_EMPTY = "vault not empty"
    ARCHIVES_DELETING = "archives deleting"
    VAULT_DELETED = "vault deleted"


_TRANSITIONS = {
    VaultState.NO_JOB: {VaultState.JOB_PENDING},
    VaultState.JOB_PENDING: {
        VaultState.JOB_PENDING,
        VaultState.JOB_COMPLETED,
        VaultState.JOB_FAILED,
    },
    VaultState.JOB_FAILED: {VaultState.JOB_PENDING},
    VaultState.JOB_COMPLETED: {VaultState.INVENTORY_KNOWN},
    VaultState.INVENTORY_KNOWN: {VaultState.VAULT_EMPTY, VaultState.VAULT_NON_EMPTY},
    VaultState.VAULT_NON_EMPTY: {VaultState.ARCHIVES_DELETING},
    VaultState.ARCHIVES_DELETING: {VaultState.VAULT_EMPTY},
    VaultState.VAULT_EMPTY: {VaultState.VAULT_DELETED},
    VaultState.VAULT_DELETED: set(),
}


def next_states(state):
    return frozenset(_TRANSITIONS[state])


def check_transition(current, target):
    """
    :return: ``target``, when the move from ``current`` is allowed.
    :raises PreconditionViolation: Otherwise.
    """
    if target not in _TRANSITIONS[current]:
        raise PreconditionViolation(
            f"Cannot go from '{current.value}' to '{target.value}'.")
    return target


def state_for_job(job):
    """Maps the job being followed (or None) to the vault state it implies."""
    if job is None:
        return VaultState.NO_JOB
    if not job.completed:
        return VaultState.JOB_PENDING
    if job.status == JobStatus.SUCCEEDED:
        return VaultState.JOB_COMPLETED
    return VaultState.JOB_FAILED
