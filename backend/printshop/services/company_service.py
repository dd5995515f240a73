# Overview: Service-layer operations for companies and branches.

from __future__ import annotations

from ..extensions import db
from ..models import Company, Branch
from . import permission_service
from .auth_service import create_default_roles
from .concurrency import lock_for_update, run_with_retry
from .pagination import paginate


class CompanyError(Exception):
    """Raised when company or branch operations fail."""
    pass


COMPANY_MUTABLE_FIELDS = {"name", "code", "email", "phone", "address", "tax_rate", "currency", "is_active"}
BRANCH_MUTABLE_FIELDS = {"name", "code", "address", "phone", "is_active"}


def create_company(*, patch: dict) -> Company:
    """
    Create a tenant with its default roles and their permission sets.
    """
    def _op():
        code = patch.get("code")
        if code and db.session.query(Company).filter_by(code=code).first():
            raise CompanyError(f"Company code '{code}' already exists")

        company = Company()
        for k, v in patch.items():
            if k in COMPANY_MUTABLE_FIELDS:
                setattr(company, k, v)

        db.session.add(company)
        db.session.commit()
        return company

    company = run_with_retry(_op)

    permission_service.initialize_permissions()
    create_default_roles(company.id)
    permission_service.assign_default_role_permissions(company.id)
    return company


def list_companies(*, page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Company).order_by(Company.name.asc(), Company.id.asc())
    return paginate(query, page=page, per_page=per_page)


def update_company(company_id: int, *, patch: dict) -> Company:
    def _op():
        company = lock_for_update(db.session.query(Company).filter_by(id=company_id)).first()
        if not company:
            raise CompanyError("Company not found")

        code = patch.get("code")
        if code and code != company.code:
            if db.session.query(Company).filter(Company.code == code, Company.id != company_id).first():
                raise CompanyError(f"Company code '{code}' already exists")

        for k, v in patch.items():
            if k in COMPANY_MUTABLE_FIELDS:
                setattr(company, k, v)

        db.session.commit()
        return company

    return run_with_retry(_op)


def create_branch(*, company_id: int, patch: dict) -> Branch:
    def _op():
        code = patch.get("code")
        if code and db.session.query(Branch).filter_by(company_id=company_id, code=code).first():
            raise CompanyError(f"Branch code '{code}' already exists in this company")

        branch = Branch(company_id=company_id)
        for k, v in patch.items():
            if k in BRANCH_MUTABLE_FIELDS:
                setattr(branch, k, v)

        db.session.add(branch)
        db.session.commit()
        return branch

    return run_with_retry(_op)


def list_branches(
    *,
    company_id: int,
    include_inactive: bool = False,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(Branch).filter(Branch.company_id == company_id)
    if not include_inactive:
        query = query.filter(Branch.is_active.is_(True))
    query = query.order_by(Branch.name.asc(), Branch.id.asc())
    return paginate(query, page=page, per_page=per_page)


def update_branch(branch: Branch, *, patch: dict) -> Branch:
    """Apply a validated patch to a branch already checked against the tenant."""
    def _op():
        code = patch.get("code")
        if code and code != branch.code:
            clash = db.session.query(Branch).filter(
                Branch.company_id == branch.company_id,
                Branch.code == code,
                Branch.id != branch.id,
            ).first()
            if clash:
                raise CompanyError(f"Branch code '{code}' already exists in this company")

        for k, v in patch.items():
            if k in BRANCH_MUTABLE_FIELDS:
                setattr(branch, k, v)

        db.session.commit()
        return branch

    return run_with_retry(_op)


def deactivate_branch(branch: Branch) -> Branch:
    branch.is_active = False
    db.session.commit()
    return branch
