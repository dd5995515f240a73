# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service with Multi-Tenant Support

Staff users belong to exactly one company (company_id). Username/email
uniqueness is company-scoped. Passwords are hashed with bcrypt and must
meet strength requirements.

SECURITY NOTES:
- bcrypt cost factor from BCRYPT_LOG_ROUNDS (default 12)
- Minimum 8 characters, upper, lower, digit and special char
- Session tokens managed separately (see session_service.py)
- Authentication refuses users of deactivated companies
"""

import bcrypt
import re
from flask import current_app
from ..extensions import db
from ..models import User, Role, UserRole, Company, Branch
from ..permissions import DEFAULT_ROLES
from printshop.time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class UserError(Exception):
    """Raised for user and role management errors."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Raises PasswordValidationError unless the password has 8+ characters
    with an uppercase letter, a lowercase letter, a digit and a special
    character.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_LOG_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), bcrypt.gensalt(rounds=rounds))
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    company_id: int,
    branch_id: int | None = None,
    full_name: str | None = None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        UserError: If company is missing/inactive, user exists, or the branch
            belongs to another company
        PasswordValidationError: If password doesn't meet requirements
    """
    company = db.session.query(Company).filter_by(id=company_id).first()
    if not company:
        raise UserError("Company not found")
    if not company.is_active:
        raise UserError("Company is not active")

    existing = db.session.query(User).filter(
        User.company_id == company_id,
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise UserError("Username or email already exists in this company")

    if branch_id is not None:
        branch = db.session.query(Branch).filter_by(id=branch_id).first()
        if not branch or branch.company_id != company_id:
            raise UserError("Branch not found")

    user = User(
        company_id=company_id,
        branch_id=branch_id,
        username=username,
        email=email,
        full_name=full_name,
        password_hash=hash_password(password),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, company_code: str | None = None) -> User | None:
    """
    Authenticate user with username (or email) and password.

    If company_code is given, the lookup is scoped to that company.
    Updates last_login_at on success. Returns None on any failure.
    """
    query = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    )

    if company_code:
        query = query.join(Company, Company.id == User.company_id).filter(Company.code == company_code)

    user = query.first()
    if not user:
        return None

    company = db.session.query(Company).filter_by(id=user.company_id).first()
    if not company or not company.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign one of the user's company roles to the user."""
    user = db.session.query(User).filter_by(id=user_id).first()
    if not user:
        raise UserError("User not found")

    role = db.session.query(Role).filter_by(company_id=user.company_id, name=role_name).first()
    if not role:
        raise UserError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(user_id=user_id, role_id=role.id).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(user_role)
    db.session.commit()
    return user_role


def create_default_roles(company_id: int) -> list[Role]:
    """Create the standard roles for a company if they don't exist."""
    roles = []
    for name, desc in DEFAULT_ROLES:
        role = db.session.query(Role).filter_by(company_id=company_id, name=name).first()
        if not role:
            role = Role(company_id=company_id, name=name, description=desc)
            db.session.add(role)
        roles.append(role)

    db.session.commit()
    return roles
