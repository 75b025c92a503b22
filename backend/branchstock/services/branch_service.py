from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Branch, User
from ..permissions import ROLES
from ..validation import optional_str, require_int, require_str
from .concurrency import lock_for_update, run_in_transaction

BRANCH_MUTABLE_FIELDS = {"name", "address", "phone", "is_active"}
USER_MUTABLE_FIELDS = {"name", "email", "role", "branch_id", "is_active"}


def get_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError("Branch", branch_id)
    return branch


def get_branch_by_code(code: str) -> Branch:
    branch = db.session.query(Branch).filter_by(code=code).first()
    if branch is None:
        raise NotFoundError("Branch", code)
    return branch


def list_branches(active_only: bool = False) -> list[Branch]:
    query = db.session.query(Branch)
    if active_only:
        query = query.filter(Branch.is_active.is_(True))
    return query.order_by(Branch.code.asc()).all()


def create_branch(
    code: str,
    name: str,
    address: str | None = None,
    phone: str | None = None,
) -> Branch:
    """
    Create a branch. The code becomes part of every document number issued
    for the branch, so it is restricted to characters that survive in one.
    """
    code = require_str(code, "code", max_length=16).upper()
    if "/" in code:
        raise ValidationError("code must not contain '/'", field="code", value=code)
    name = require_str(name, "name", max_length=120)
    address = optional_str(address, "address")
    phone = optional_str(phone, "phone", max_length=32)

    def _op():
        if db.session.query(Branch.id).filter_by(code=code).first() is not None:
            raise ValidationError(f"Branch code {code} already exists", field="code", value=code)
        branch = Branch(code=code, name=name, address=address, phone=phone, is_active=True)
        db.session.add(branch)
        db.session.flush()
        return branch

    return run_in_transaction(_op)


def update_branch(branch_id: int, patch: dict) -> Branch:
    """Apply a partial update. The code is immutable once documents may reference it."""
    if "code" in patch:
        raise ValidationError("code cannot be changed", field="code", value=patch.get("code"))

    def _op():
        branch = lock_for_update(db.session.query(Branch).filter_by(id=branch_id)).first()
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        for key, value in patch.items():
            if key not in BRANCH_MUTABLE_FIELDS:
                continue
            if key == "name":
                value = require_str(value, "name", max_length=120)
            elif key == "is_active":
                if not isinstance(value, bool):
                    raise ValidationError("is_active must be a boolean", field="is_active", value=value)
            else:
                value = optional_str(value, key)
            setattr(branch, key, value)
        return branch

    return run_in_transaction(_op)


def create_user(
    username: str,
    name: str,
    role: str = "cashier",
    branch_id: int | None = None,
    email: str | None = None,
) -> User:
    username = require_str(username, "username", max_length=64)
    name = require_str(name, "name", max_length=120)
    email = optional_str(email, "email", max_length=255)
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}", field="role", value=role)

    def _op():
        if db.session.query(User.id).filter_by(username=username).first() is not None:
            raise ValidationError(f"Username {username} already exists", field="username", value=username)
        if branch_id is not None:
            get_branch(branch_id)
        user = User(username=username, name=name, email=email, role=role, branch_id=branch_id, is_active=True)
        db.session.add(user)
        db.session.flush()
        return user

    return run_in_transaction(_op)


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def list_users(branch_id: int | None = None, search: str | None = None) -> list[User]:
    query = db.session.query(User)
    if branch_id is not None:
        query = query.filter(User.branch_id == branch_id)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(User.name.ilike(pattern), User.username.ilike(pattern)))
    return query.order_by(User.username.asc()).all()


def update_user(user_id: int, patch: dict) -> User:
    """
    Partial update of a staff user. The username is immutable; a null
    branch_id moves the user to head office.
    """
    if "username" in patch:
        raise ValidationError("username cannot be changed", field="username", value=patch.get("username"))

    def _op():
        user = lock_for_update(db.session.query(User).filter_by(id=user_id)).first()
        if user is None:
            raise NotFoundError("User", user_id)
        for key, value in patch.items():
            if key not in USER_MUTABLE_FIELDS:
                continue
            if key == "name":
                value = require_str(value, "name", max_length=120)
            elif key == "email":
                value = optional_str(value, "email", max_length=255)
            elif key == "role":
                if value not in ROLES:
                    raise ValidationError(f"role must be one of: {', '.join(ROLES)}", field="role", value=value)
            elif key == "branch_id":
                if value is not None:
                    value = get_branch(require_int(value, "branch_id", minimum=1)).id
            elif key == "is_active" and not isinstance(value, bool):
                raise ValidationError("is_active must be a boolean", field="is_active", value=value)
            setattr(user, key, value)
        return user

    return run_in_transaction(_op)


def deactivate_user(user_id: int) -> User:
    """Soft delete: ledger entries and documents keep pointing at the user."""
    return update_user(user_id, {"is_active": False})
