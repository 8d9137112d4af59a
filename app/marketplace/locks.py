"""
Optimistic locking for lifecycle writes.

Connection carries a version column incremented on every save. Before a
retry claims a connection it calls check_version() with the version it
read; a concurrent writer bumps the version first and the claim fails
with StaleRecordError instead of running a second payment attempt.

Usage:
    from marketplace.locks import check_version

    with transaction.atomic():
        connection = check_version(Connection, connection_id, expected_version=3)
        connection.begin_retry(max_retries=5)
        connection.save()  # version -> 4
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

from django.db import models, transaction

from core.exceptions import NotFoundError
from marketplace.exceptions import StaleRecordError

if TYPE_CHECKING:
    from typing import Any

T = TypeVar("T", bound=models.Model)


def check_version(
    model_class: type[T],
    pk: Any,
    expected_version: int,
) -> T:
    """
    Atomically check version and lock a record for update.

    Args:
        model_class: Django model class (must have a 'version' field)
        pk: Primary key of the record
        expected_version: Version the caller read

    Returns:
        The locked model instance

    Raises:
        StaleRecordError: If the version changed (concurrent modification)
        NotFoundError: If the record doesn't exist

    Note:
        Call inside transaction.atomic(); the row lock is held until the
        outer transaction ends.
    """
    with transaction.atomic():
        instance = (
            model_class.objects.select_for_update()
            .filter(pk=pk, version=expected_version)
            .first()
        )

        if instance is None:
            model_name = model_class.__name__
            current_version = (
                model_class.objects.filter(pk=pk).values_list("version", flat=True).first()
            )
            if current_version is None:
                raise NotFoundError(
                    f"{model_name} {pk} not found",
                    error_code=f"{model_name.upper()}_NOT_FOUND",
                    details={"pk": str(pk)},
                )

            raise StaleRecordError(
                f"{model_name} {pk} has been modified "
                f"(expected version {expected_version}, current {current_version})",
                details={
                    "pk": str(pk),
                    "expected_version": expected_version,
                    "current_version": current_version,
                },
            )

        return instance


__all__ = ["check_version"]
