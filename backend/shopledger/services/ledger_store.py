# Overview: Service-layer owner of the database handle; provides the atomic unit of work.

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import ConflictError, InfrastructureError, LedgerError
"""
Ledger Store Invariants (authoritative)

- Exactly one unit of work writes at a time (process-wide lock held for the
  whole unit). Reads outside a unit take no lock and only see committed rows.
- A unit either commits every write it made or rolls all of them back.
- A unit opened while another is active on the same thread joins it; only the
  outermost unit commits. A failed inner unit dooms the outer one.
- Constraint violations surface as ConflictError, any other database failure
  as InfrastructureError. LedgerError raised by the unit body passes through.
"""


class LedgerStore:
    """
    Explicitly constructed handle over the Flask-SQLAlchemy extension.

    Lifecycle:
        store = LedgerStore(db)       # in create_app, after db.init_app
        store.create_schema()         # idempotent CREATE TABLE IF NOT EXISTS
        ... units of work ...
        store.dispose()               # release pooled connections
    """

    def __init__(self, db):
        self._db = db
        self._write_lock = threading.RLock()
        self._local = threading.local()

    @property
    def session(self) -> Session:
        return self._db.session

    @property
    def metadata(self):
        return self._db.metadata

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------

    def create_schema(self) -> None:
        from .. import models  # noqa: F401
        with self._write_lock:
            self._db.create_all()

    def drop_schema(self) -> None:
        with self._write_lock:
            self._db.session.remove()
            self._db.drop_all()

    def dispose(self) -> None:
        self._db.session.remove()
        self._db.engine.dispose()

    def ping(self) -> bool:
        self.session.execute(text("SELECT 1"))
        return True

    # ------------------------------------------------------------------
    # unit of work
    # ------------------------------------------------------------------

    @contextmanager
    def unit_of_work(self, name: str) -> Iterator[Session]:
        """
        Run the body as one atomic unit named `name`.

        Yields the session to write through. Nothing is visible to other
        readers until the outermost unit commits.

        Nested units have no savepoint. If an inner unit raises, the outer
        unit is doomed: even when its body catches the error and carries on,
        it rolls back and raises InfrastructureError instead of committing.
        """
        with self._write_lock:
            depth = getattr(self._local, "depth", 0)
            self._local.depth = depth + 1
            if not depth:
                self._local.doomed_by = None
            session = self.session
            try:
                if depth:
                    try:
                        yield session
                    except BaseException:
                        if self._local.doomed_by is None:
                            self._local.doomed_by = name
                        raise
                    return

                try:
                    yield session
                    if self._local.doomed_by is not None:
                        raise InfrastructureError(
                            "Nested unit failed; outer unit rolled back",
                            details={"operation": name, "nested": self._local.doomed_by},
                        )
                    session.commit()
                except LedgerError as exc:
                    session.rollback()
                    current_app.logger.warning("Unit %s aborted: %s", name, exc)
                    raise
                except IntegrityError as exc:
                    session.rollback()
                    current_app.logger.warning("Unit %s violated a constraint: %s", name, exc.orig)
                    raise ConflictError(
                        "Constraint violation",
                        details={"operation": name, "reason": str(exc.orig)},
                    ) from exc
                except SQLAlchemyError as exc:
                    session.rollback()
                    current_app.logger.exception("Unit %s failed in the store", name)
                    raise InfrastructureError(
                        "Ledger store failure",
                        details={"operation": name},
                    ) from exc
                except BaseException:
                    session.rollback()
                    raise
                current_app.logger.info("Unit %s committed", name)
            finally:
                self._local.depth = depth
