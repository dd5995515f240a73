# Overview: Atomic per-branch document numbering for invoices, payments and print jobs.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Branch, DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _allocate(branch_id: int, sequence_key: str) -> int:
    """
    Atomically allocate the next number for (branch_id, sequence_key).

    The UPDATE takes the row lock; a missing row is created starting at 1.
    Runs inside the caller's transaction and does not commit.
    """
    if not branch_id:
        raise DocumentSequenceError("branch_id is required")
    if not sequence_key:
        raise DocumentSequenceError("sequence_key is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.branch_id == branch_id,
            DocumentSequence.sequence_key == sequence_key,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    def _read_current() -> int:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(branch_id=branch_id, sequence_key=sequence_key)
            .scalar()
        )
        return current - 1

    if db.session.execute(stmt).rowcount:
        return _read_current()

    seq = DocumentSequence(branch_id=branch_id, sequence_key=sequence_key, next_number=2)
    try:
        with db.session.begin_nested():
            db.session.add(seq)
        return 1
    except IntegrityError:
        # Another transaction created the row first
        if not db.session.execute(stmt).rowcount:
            raise
        return _read_current()


def _branch_code(branch_id: int, fallback: str) -> str:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise DocumentSequenceError(f"Branch {branch_id} not found")
    return (branch.code or fallback).upper()


def next_invoice_number(branch_id: int, on: date) -> str:
    """<BRANCHCODE>-<YYYYMMDD>-<NNNN>, restarting daily per branch."""
    day = on.strftime("%Y%m%d")
    number = _allocate(branch_id, f"INVOICE:{day}")
    return f"{_branch_code(branch_id, 'INV')}-{day}-{number:04d}"


def next_payment_reference(branch_id: int, on: date) -> str:
    """PAY-<BRANCHCODE>-<YYMMDD>-<NNNN>, restarting daily per branch."""
    day = on.strftime("%y%m%d")
    number = _allocate(branch_id, f"PAYMENT:{day}")
    return f"PAY-{_branch_code(branch_id, 'GEN')}-{day}-{number:04d}"


def next_job_number(branch_id: int, on: date) -> str:
    """JOB-<BRANCHCODE>-<YYYYMMDD>-<NNN>, restarting daily per branch."""
    day = on.strftime("%Y%m%d")
    number = _allocate(branch_id, f"JOB:{day}")
    return f"JOB-{_branch_code(branch_id, 'GEN')}-{day}-{number:03d}"
