"""
Reconciliation of the declared index schema with the engine's live schema.

Changes are additive only: missing fields are added to an existing index,
fields already on the index are never redefined or dropped. Changing the
type or attributes of an existing field needs a manual index rebuild.
"""

from dataclasses import dataclass, field
from typing import List, Sequence

from searchgate.config import FieldDeclaration
from searchgate.exceptions import EngineError, IndexExistsError, SchemaSyncError
from searchgate.logging_config import get_logger

logger = get_logger(__name__)


@dataclass
class SyncResult:
    """Outcome of a reconciliation run."""
    created: bool = False
    added_fields: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.created or bool(self.added_fields)


def missing_fields(
    declared: Sequence[FieldDeclaration], live_names: set[str]
) -> List[FieldDeclaration]:
    """Declared fields unknown to the live index, in declared order."""
    return [f for f in declared if f.name not in live_names]


class SchemaReconciler:
    """
    Brings a live index up to (at least) the declared schema.

    Works against any engine client offering ``create_index``,
    ``alter_index`` and ``field_names``.
    """

    def __init__(self, engine, fields: Sequence[FieldDeclaration]):
        self.engine = engine
        self.fields = list(fields)

    def reconcile(self) -> SyncResult:
        """
        Create the index, or add the declared fields it lacks.

        Returns:
            SyncResult describing what was changed

        Raises:
            SchemaSyncError: on any engine failure other than the index
                already existing
        """
        try:
            self.engine.create_index(self.fields)
            logger.info(
                f"Created index {self.engine.index_name} with {len(self.fields)} fields"
            )
            return SyncResult(created=True, added_fields=[f.name for f in self.fields])
        except IndexExistsError:
            logger.info(f"Index {self.engine.index_name} already exists, checking fields")
        except EngineError as e:
            raise SchemaSyncError(str(e)) from e

        try:
            live = self.engine.field_names()
            new_fields = missing_fields(self.fields, live)
            if not new_fields:
                logger.info("Index schema is up to date")
                return SyncResult()

            names = [f.name for f in new_fields]
            logger.info(f"Adding new fields to index: {', '.join(names)}")
            self.engine.alter_index(new_fields)
            return SyncResult(added_fields=names)
        except EngineError as e:
            raise SchemaSyncError(str(e)) from e

    def plan(self) -> List[FieldDeclaration]:
        """
        Fields a reconcile run would add, without changing anything.

        If the index does not exist yet, every declared field is returned.
        """
        try:
            if not self.engine.index_exists():
                return list(self.fields)
            return missing_fields(self.fields, self.engine.field_names())
        except EngineError as e:
            raise SchemaSyncError(str(e)) from e
