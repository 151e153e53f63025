"""
Storage backends for quinielas.

The pool service only talks to a ``PoolRepository``; which backend is used is
decided once, at application start-up, from ``POOL_STORAGE``.

Every backend keeps a version counter per pool. ``save_pool`` only accepts a
snapshot whose version matches the stored one and returns the saved snapshot
with the counter moved forward, so two writers working from the same
snapshot cannot silently overwrite each other.
"""

import json
import logging
import os
import tempfile
import threading
from dataclasses import replace
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from quiniela.services.exceptions import PoolNotFoundError, StalePoolError
from quiniela.utils.records import PoolRecord

logger = logging.getLogger(__name__)


class PoolRepository:
    """Interface shared by the storage backends"""

    def list_pools(self):
        raise NotImplementedError

    def load_pool(self, pool_id):
        """Return the stored PoolRecord or raise PoolNotFoundError"""
        raise NotImplementedError

    def save_pool(self, pool):
        """Store ``pool`` and return it with its new version"""
        raise NotImplementedError

    def delete_pool(self, pool_id):
        raise NotImplementedError


class SQLAlchemyPoolRepository(PoolRepository):
    """Pools stored in the relational database through the Flask-SQLAlchemy models"""

    def __init__(self, db):
        self.db = db

    def list_pools(self):
        from quiniela.models import Quiniela

        quinielas = Quiniela.query.order_by(Quiniela.created_at.desc()).all()
        return [quiniela.to_record() for quiniela in quinielas]

    def load_pool(self, pool_id):
        quiniela = self._get(pool_id)
        if quiniela is None:
            raise PoolNotFoundError(pool_id)
        return quiniela.to_record()

    def save_pool(self, pool):
        from quiniela.models import Quiniela

        quiniela = self._get(pool.id)
        if quiniela is None:
            if pool.version:
                # Snapshot of a pool that has since been deleted
                raise PoolNotFoundError(pool.id)
            quiniela = Quiniela(id=pool.id)
            self.db.session.add(quiniela)
        elif quiniela.version != pool.version:
            logger.warning(
                f"Rejected stale write to quiniela {pool.id}: "
                f"version {pool.version}, stored {quiniela.version}"
            )
            raise StalePoolError(pool.id, pool.version, quiniela.version)

        try:
            with self.db.session.no_autoflush:
                quiniela.apply_record(pool)
            self.db.session.commit()
        except StaleDataError:
            self.db.session.rollback()
            raise StalePoolError(pool.id, pool.version)
        except SQLAlchemyError:
            self.db.session.rollback()
            logger.exception(f"Failed to save quiniela {pool.id}")
            raise

        return quiniela.to_record()

    def delete_pool(self, pool_id):
        quiniela = self._get(pool_id)
        if quiniela is None:
            raise PoolNotFoundError(pool_id)

        try:
            self.db.session.delete(quiniela)
            self.db.session.commit()
        except SQLAlchemyError:
            self.db.session.rollback()
            logger.exception(f"Failed to delete quiniela {pool_id}")
            raise

    def _get(self, pool_id):
        from quiniela.models import Quiniela

        return self.db.session.get(Quiniela, pool_id)


class JsonFilePoolRepository(PoolRepository):
    """
    Pools stored together in one JSON document.

    Writes go to a temporary file that replaces the document, so readers never
    see a half-written file. A lock serialises writers inside this process.
    """

    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()

    def list_pools(self):
        pools = list(self._read().values())
        pools.sort(key=lambda pool: pool.created_at, reverse=True)
        return pools

    def load_pool(self, pool_id):
        pool = self._read().get(pool_id)
        if pool is None:
            raise PoolNotFoundError(pool_id)
        return pool

    def save_pool(self, pool):
        with self._lock:
            pools = self._read()
            stored = pools.get(pool.id)

            if stored is None and pool.version:
                raise PoolNotFoundError(pool.id)
            if stored is not None and stored.version != pool.version:
                logger.warning(
                    f"Rejected stale write to quiniela {pool.id}: "
                    f"version {pool.version}, stored {stored.version}"
                )
                raise StalePoolError(pool.id, pool.version, stored.version)

            saved = replace(
                pool,
                version=pool.version + 1,
                updated_at=datetime.now(timezone.utc).replace(tzinfo=None),
            )
            pools[saved.id] = saved
            self._write(pools)
            return saved

    def delete_pool(self, pool_id):
        with self._lock:
            pools = self._read()
            if pools.pop(pool_id, None) is None:
                raise PoolNotFoundError(pool_id)
            self._write(pools)

    def _read(self):
        if not os.path.exists(self.path):
            return {}

        with open(self.path, encoding="utf-8") as f:
            data = json.load(f)

        pools = {}
        for item in data:
            pool = PoolRecord.from_dict(item)
            pools[pool.id] = pool
        return pools

    def _write(self, pools):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)

        payload = [pool.to_dict() for pool in pools.values()]
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            logger.exception(f"Failed to write quiniela data to {self.path}")
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


def build_pool_repository(app):
    """Create the backend selected by ``POOL_STORAGE``"""
    from quiniela import db

    storage = app.config.get("POOL_STORAGE", "database")
    if storage == "file":
        return JsonFilePoolRepository(app.config["POOL_DATA_FILE"])
    if storage == "database":
        return SQLAlchemyPoolRepository(db)
    raise ValueError(f"Unknown POOL_STORAGE '{storage}' (expected 'database' or 'file')")
