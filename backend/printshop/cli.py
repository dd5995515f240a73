# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/printshop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--company "Name"] [--code CODE] [--sample-tiers]
#   Idempotent bootstrap: creates tables, default company, branch, roles,
#   permissions and default users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Company management (MULTI-TENANT):
# - python -m flask companies list
# - python -m flask companies create --name "Acme Print" --code ACME [--tax-rate 8]
#
# Users:
# - python -m flask users list [--company-id 1]
# - python -m flask users create --company-id 1 --username admin --email a@b.c --password "Password123!" --role company_admin
#
# Permissions:
# - python -m flask perms list [--role cashier] [--category PRICING] [--company-id 1]
# - python -m flask perms check cashier_a VERIFY_PAYMENTS [--company-id 1]
# - python -m flask perms sync [--dry-run]
# - python -m flask perms grant cashier MANAGE_PRICING [--company-id 1]
# - python -m flask perms revoke cashier MANAGE_PRICING [--company-id 1]
#
# Weight pricing:
# - python -m flask pricing tiers --company-id 1 [--all]
# - python -m flask pricing quote --company-id 1 --weight 2.5 --unit kg

from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Branch, Company, Permission, Role, RolePermission, User
from .permissions import DEFAULT_ROLES, get_all_permission_codes, get_permission_definition
from .pricing import VALID_WEIGHT_UNITS, InvalidArgumentError, money_str, weight_str
from .services.auth_service import create_user, assign_role, PasswordValidationError, UserError
from .services import company_service, permission_service, weight_pricing_service
from .services.company_service import CompanyError

SAMPLE_TIERS = [
    ("Light (0-5kg)", Decimal("0"), Decimal("5"), Decimal("100"), Decimal("0")),
    ("Medium (5-20kg)", Decimal("5"), Decimal("20"), Decimal("150"), Decimal("10")),
    ("Heavy (20kg+)", Decimal("20"), None, Decimal("300"), Decimal("15")),
]

DEFAULT_PASSWORD = "Password123!"


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--company', 'company_name', default='Default Print Shop', help='Company name')
@click.option('--code', 'company_code', default='DEFAULT', help='Company code')
@click.option('--sample-tiers', is_flag=True, help='Seed three example weight pricing tiers')
@with_appcontext
def init_system(company_name, company_code, sample_tiers):
    """
    Initialize the system: schema, default company and branch, roles,
    permissions and default users (all with password "Password123!").

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing system...")
    db.create_all()

    company = db.session.query(Company).filter_by(code=company_code).first()
    if not company:
        company = company_service.create_company(patch={"name": company_name, "code": company_code})
        click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Code: {company.code})")
    else:
        permission_service.initialize_permissions()
        permission_service.assign_default_role_permissions(company.id)
        click.echo(f"PASS Using existing company: {company.name} (ID: {company.id})")

    branch = db.session.query(Branch).filter_by(company_id=company.id).first()
    if not branch:
        branch = company_service.create_branch(company_id=company.id, patch={"name": "Main Branch", "code": "MAIN"})
        click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    click.echo("\nUSERS Creating default users...")
    default_users = [
        ("superadmin", "superadmin@printshop.local", "super_admin", None),
        ("admin", "admin@printshop.local", "company_admin", None),
        ("manager", "manager@printshop.local", "branch_manager", branch.id),
        ("cashier", "cashier@printshop.local", "cashier", branch.id),
        ("production", "production@printshop.local", "production_staff", branch.id),
    ]

    for username, email, role_name, branch_id in default_users:
        existing = db.session.query(User).filter_by(company_id=company.id, username=username).first()
        if existing:
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            user = create_user(
                username=username,
                email=email,
                password=DEFAULT_PASSWORD,
                company_id=company.id,
                branch_id=branch_id,
            )
            if role_name == "super_admin":
                user.is_super_admin = True
                db.session.commit()
            assign_role(user.id, role_name)
            click.echo(f"PASS Created user: {username} ({email}) with role '{role_name}'")
        except (PasswordValidationError, UserError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {str(e)}")

    if sample_tiers:
        if weight_pricing_service.list_tiers(company_id=company.id):
            click.echo("WARN  Company already has pricing tiers, skipping samples")
        else:
            for name, min_w, max_w, base, per_kg in SAMPLE_TIERS:
                weight_pricing_service.create_tier(
                    company_id=company.id,
                    patch={
                        "tier_name": name,
                        "min_weight": min_w,
                        "max_weight": max_w,
                        "base_price": base,
                        "per_kg_rate": per_kg,
                    },
                )
            click.echo(f"PASS Created {len(SAMPLE_TIERS)} sample pricing tiers")

    click.echo("\n" + "=" * 60)
    click.echo("DONE System initialized")
    click.echo("=" * 60)
    click.echo(f"Company: {company.name} (ID: {company.id}, Code: {company.code})")
    click.echo(f"Branch: {branch.name} (ID: {branch.id})")
    click.echo(f"Default password for all users: {DEFAULT_PASSWORD} (CHANGE IN PRODUCTION!)")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


# =============================================================================
# COMPANY MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('companies')
def companies_group():
    """Company (tenant) management commands."""


@companies_group.command('list')
@with_appcontext
def list_companies_cli():
    """List all companies."""
    companies = db.session.query(Company).order_by(Company.id).all()

    if not companies:
        click.echo("No companies found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Branches':<9} {'Users'}")
    click.echo("=" * 80)

    for company in companies:
        branch_count = db.session.query(Branch).filter_by(company_id=company.id).count()
        user_count = db.session.query(User).filter_by(company_id=company.id).count()
        active_str = "Yes" if company.is_active else "No"
        click.echo(
            f"{company.id:<5} {company.name:<30} {company.code or '-':<15} {active_str:<8} {branch_count:<9} {user_count}"
        )

    click.echo("=" * 80 + "\n")


@companies_group.command('create')
@click.option('--name', required=True, help='Company name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--tax-rate', type=click.FloatRange(0, 100), default=0.0, help='Tax rate percentage')
@click.option('--branch', 'branch_name', default='Main Branch', help='Name of the first branch')
@with_appcontext
def create_company_cli(name, code, tax_rate, branch_name):
    """Create a company with default roles and a first branch."""
    try:
        company = company_service.create_company(
            patch={"name": name, "code": code, "tax_rate": Decimal(str(tax_rate))}
        )
        branch = company_service.create_branch(company_id=company.id, patch={"name": branch_name, "code": "MAIN"})
    except CompanyError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"PASS Created company: {company.name} (ID: {company.id}, Code: {company.code})")
    click.echo(f"PASS Created branch: {branch.name} (ID: {branch.id})")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--branch-id', type=int, help='Branch ID (omit for company-level users)')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice([name for name, _ in DEFAULT_ROLES]), prompt=True, help='Role')
@with_appcontext
def create_user_cli(company_id, branch_id, username, email, password, role):
    """
    Create a user in a company.

    Password must be 8+ chars with upper, lower, digit and special char.
    """
    company = db.session.get(Company, company_id)
    if not company:
        click.echo(f"FAIL Company ID {company_id} not found")
        return

    try:
        user = create_user(
            username=username,
            email=email,
            password=password,
            company_id=company.id,
            branch_id=branch_id,
        )
        if role == "super_admin":
            user.is_super_admin = True
            db.session.commit()
        assign_role(user.id, role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except UserError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")
    click.echo(f"     Company: {company.name} (ID: {company.id})")


@users_group.command('list')
@click.option('--company-id', type=int, help='Filter by company ID')
@with_appcontext
def list_users_cli(company_id):
    """List users with their roles."""
    query = db.session.query(User)
    if company_id:
        query = query.filter_by(company_id=company_id)
    users = query.order_by(User.company_id, User.username).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 90)
    click.echo(f"{'ID':<5} {'Company':<8} {'Branch':<8} {'Username':<20} {'Active':<8} {'Roles'}")
    click.echo("=" * 90)
    for user in users:
        roles = ", ".join(permission_service.get_user_role_names(user.id)) or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(
            f"{user.id:<5} {user.company_id:<8} {user.branch_id or '-':<8} {user.username:<20} {active_str:<8} {roles}"
        )
    click.echo("=" * 90 + "\n")


# =============================================================================
# PERMISSION COMMANDS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection and repair commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name')
@click.option('--category', help='Filter by category')
@click.option('--company-id', type=int, help='Company of the role (defaults to the first match)')
@with_appcontext
def list_permissions_cli(role, category, company_id):
    """List permissions, optionally filtered by role or category."""
    query = db.session.query(Permission)
    if role:
        role_query = db.session.query(Role).filter_by(name=role)
        if company_id:
            role_query = role_query.filter_by(company_id=company_id)
        role_obj = role_query.first()
        if not role_obj:
            click.echo(f"FAIL Role '{role}' not found")
            return
        query = query.join(RolePermission, RolePermission.permission_id == Permission.id).filter(
            RolePermission.role_id == role_obj.id
        )
    if category:
        query = query.filter(Permission.category == category.upper())

    permissions = query.order_by(Permission.category, Permission.code).all()

    click.echo(f"\n{'Code':<30} {'Name':<35} {'Category'}")
    click.echo("-" * 80)
    for perm in permissions:
        click.echo(f"{perm.code:<30} {perm.name:<35} {perm.category}")
    click.echo(f"\nTotal: {len(permissions)}")


@perms_group.command('check')
@click.argument('username')
@click.argument('permission_code')
@click.option('--company-id', type=int, help='Company of the user (defaults to the first match)')
@with_appcontext
def check_permission_cli(username, permission_code, company_id):
    """Check if a user has a specific permission."""
    definition = get_permission_definition(permission_code.upper())
    if definition is None:
        click.echo(f"FAIL Unknown permission '{permission_code}'")
        return

    query = db.session.query(User).filter_by(username=username)
    if company_id:
        query = query.filter_by(company_id=company_id)
    user = query.first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return

    code = definition["code"]
    if permission_service.user_has_permission(user.id, code):
        click.echo(f"PASS User '{username}' HAS permission '{code}' ({definition['name']})")
    else:
        click.echo(f"FAIL User '{username}' DOES NOT HAVE permission '{code}' ({definition['name']})")

    roles = permission_service.get_user_role_names(user.id)
    click.echo(f"\nUser roles: {', '.join(roles)}")
    click.echo(f"Total permissions: {len(permission_service.get_user_permissions(user.id))}")


@perms_group.command('sync')
@click.option('--dry-run', is_flag=True, help='Only report missing permission records')
@with_appcontext
def sync_permissions_cli(dry_run):
    """Create Permission records for defined codes missing from the database."""
    stored = {row.code for row in db.session.query(Permission.code).all()}
    missing = [code for code in get_all_permission_codes() if code not in stored]

    if not missing:
        click.echo(f"PASS All {len(stored)} permissions present")
        return

    for code in missing:
        click.echo(f"  missing: {code} ({get_permission_definition(code)['category']})")
    if dry_run:
        click.echo(f"WARN  {len(missing)} permission(s) missing")
        return

    created = permission_service.initialize_permissions()
    click.echo(f"PASS Created {created} permission(s)")


@perms_group.command('grant')
@click.argument('role_name')
@click.argument('permission_code')
@click.option('--company-id', type=int, help='Company of the role (all companies if omitted)')
@with_appcontext
def grant_permission_cli(role_name, permission_code, company_id):
    """Grant a permission to a role."""
    try:
        permission_service.grant_permission_to_role(role_name, permission_code, company_id=company_id)
        click.echo(f"PASS Granted '{permission_code}' to role '{role_name}'")
    except ValueError as e:
        click.echo(f"FAIL Error: {str(e)}")


@perms_group.command('revoke')
@click.argument('role_name')
@click.argument('permission_code')
@click.option('--company-id', type=int, help='Company of the role')
@with_appcontext
def revoke_permission_cli(role_name, permission_code, company_id):
    """Revoke a permission from a role."""
    try:
        revoked = permission_service.revoke_permission_from_role(role_name, permission_code, company_id=company_id)
        if revoked:
            click.echo(f"PASS Revoked '{permission_code}' from role '{role_name}'")
        else:
            click.echo(f"WARN  Permission '{permission_code}' was not granted to '{role_name}'")
    except ValueError as e:
        click.echo(f"FAIL Error: {str(e)}")


# =============================================================================
# WEIGHT PRICING COMMANDS
# =============================================================================

@click.group('pricing')
def pricing_group():
    """Weight pricing inspection commands."""


@pricing_group.command('tiers')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--all', 'show_all', is_flag=True, help='Include inactive tiers')
@with_appcontext
def list_tiers_cli(company_id, show_all):
    """List a company's weight pricing tiers."""
    tiers = weight_pricing_service.list_tiers(company_id=company_id, status=None if show_all else "active")

    if not tiers:
        click.echo("No pricing tiers found.")
        return

    click.echo(f"\n{'ID':<5} {'Name':<25} {'Range':<22} {'Base':>10} {'Per kg':>10} {'Status':<9} {'Order'}")
    click.echo("-" * 90)
    for tier in tiers:
        per_kg = money_str(tier.per_kg_rate) if tier.per_kg_rate is not None else "0.00"
        click.echo(
            f"{tier.id:<5} {tier.tier_name:<25} {tier.weight_range:<22} "
            f"{money_str(tier.base_price):>10} {per_kg:>10} {tier.status:<9} {tier.sort_order}"
        )


@pricing_group.command('quote')
@click.option('--company-id', type=int, required=True, help='Company ID')
@click.option('--weight', required=True, help='Weight to price')
@click.option('--unit', type=click.Choice(VALID_WEIGHT_UNITS), default='kg', help='Weight unit')
@with_appcontext
def quote_cli(company_id, weight, unit):
    """Delivery charge for a weight using the company's active tiers."""
    try:
        result = weight_pricing_service.calculate_delivery_price(company_id, weight, unit)
    except InvalidArgumentError as e:
        click.echo(f"FAIL {str(e)}")
        return

    click.echo(f"Weight:          {weight} {unit} ({weight_str(result.weight_kg)} kg)")
    click.echo(f"Tier:            {result.tier_name or 'No matching tier'}")
    click.echo(f"Base price:      {money_str(result.base_price)}")
    click.echo(f"Additional:      {money_str(result.additional_price)}")
    click.echo(f"Delivery charge: {money_str(result.delivery_charge)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(companies_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(pricing_group)
