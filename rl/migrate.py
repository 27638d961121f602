"""
Schema migration framework for rl.

Tracks applied versions in a ``schema_migrations`` ledger and runs the
numbered migration modules in rl/migrations/ in ascending order. Each
module is named NNN_description.py and exposes an ``up(conn)`` function
taking a SQLAlchemy Connection.

Each version's schema changes and its ledger row are committed in a single
transaction: either both land or neither does. There are no down
migrations. Any failure raises MigrationError and the store refuses to
open.
"""
import importlib
import logging
import pkgutil
from types import ModuleType
from typing import List, Set, Tuple

from sqlalchemy import insert, select
from sqlalchemy.engine import Connection, Engine

from rl import timeutil
from rl.errors import MigrationError
from rl.models import SchemaMigration

logger = logging.getLogger(__name__)

MigrationStep = Tuple[int, str, ModuleType]


def discover_migrations() -> List[MigrationStep]:
    """
    Scan rl.migrations for numbered migration modules.

    Returns:
        Sorted list of (version, name, module) tuples

    Raises:
        RuntimeError: On a module without up(), or duplicate versions
    """
    import rl.migrations as pkg

    migrations: List[MigrationStep] = []
    for _finder, modname, _ispkg in pkgutil.iter_modules(pkg.__path__):
        prefix = modname.split("_", 1)[0]
        if not prefix.isdigit():
            continue
        mod = importlib.import_module(f"rl.migrations.{modname}")
        if not hasattr(mod, "up"):
            raise RuntimeError(
                f"Migration rl/migrations/{modname}.py is missing an up(conn) function"
            )
        migrations.append((int(prefix), modname, mod))

    migrations.sort(key=lambda m: m[0])

    seen: Set[int] = set()
    for version, name, _ in migrations:
        if version in seen:
            raise RuntimeError(f"Duplicate migration version {version}: {name}")
        seen.add(version)

    return migrations


class Migrator:
    """Brings a store's schema up to the latest version."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _ensure_ledger(self, conn: Connection) -> None:
        SchemaMigration.__table__.create(conn, checkfirst=True)

    def applied_versions(self) -> Set[int]:
        """Versions recorded in the ledger."""
        with self.engine.begin() as conn:
            self._ensure_ledger(conn)
            return set(conn.execute(select(SchemaMigration.version)).scalars())

    def pending(self) -> List[MigrationStep]:
        """Migration steps not yet applied, in the order they would run."""
        applied = self.applied_versions()
        return [step for step in discover_migrations() if step[0] not in applied]

    def migrate(self) -> List[int]:
        """
        Apply every pending migration.

        Returns:
            Versions applied by this call (empty when already current)

        Raises:
            MigrationError: If any step fails; that step is fully rolled back
        """
        applied: List[int] = []
        for version, name, mod in self.pending():
            logger.info(f"Applying migration {name} (v{version})")
            try:
                with self.engine.begin() as conn:
                    mod.up(conn)
                    conn.execute(insert(SchemaMigration).values(
                        version=version,
                        applied_at=timeutil.format_timestamp(timeutil.now()),
                    ))
            except Exception as e:
                logger.error(f"Migration {name} failed: {e}")
                raise MigrationError(version, name, e) from e
            applied.append(version)

        if applied:
            logger.info(f"Applied {len(applied)} migration(s), now at v{applied[-1]}")
        return applied
