"""
Tenant scoping helpers.

A request's tenant is the company captured in its session (g.company_id).
A session without a company is an unscoped operator and sees every company.

Soft-delete convention: a row is active when deleted_at IS NULL.
"""

from ..extensions import db


def active_filter(model):
    """SQL criterion matching rows that are not soft-deleted."""
    return model.deleted_at.is_(None)


def scoped_query(model, company_id: int | None, *, include_deleted: bool = False):
    """
    Query for model restricted to company_id (when given) and to active rows.
    """
    query = db.session.query(model)
    if not include_deleted:
        query = query.filter(active_filter(model))
    if company_id is not None:
        query = query.filter(model.company_id == company_id)
    return query
