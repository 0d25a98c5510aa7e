"""
Local entity persistence used by sync jobs.

Sync code talks to a small document-store style interface (find one by
filter, find-one-and-update, create) and gets plain dicts back, so jobs
never hold ORM objects across remote calls.
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storesync.models.entities import ENTITY_MODELS
from storesync.utils.logger import log


class EntityStore(ABC):
    """Document-store interface over synced products, customers and orders"""

    @abstractmethod
    def find_one(self, entity_type: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Return the first record matching every filter (equality), or None"""
        pass

    @abstractmethod
    def find_one_and_update(
        self,
        entity_type: str,
        filters: Dict[str, Any],
        values: Dict[str, Any],
        upsert: bool = False
    ) -> Optional[Dict[str, Any]]:
        """
        Update the first record matching `filters` with `values`.

        With upsert=True a missing record is created from filters + values.
        Returns the record after the update, or None if nothing matched.
        """
        pass

    @abstractmethod
    def create(self, entity_type: str, values: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new record and return it"""
        pass

    def close(self):
        pass


def _row_to_dict(row) -> Dict[str, Any]:
    return {column.name: getattr(row, column.name) for column in row.__table__.columns}


class SqlAlchemyEntityStore(EntityStore):
    """EntityStore backed by one SQLAlchemy session (one per job)"""

    def __init__(self, db: Session):
        self.db = db

    def _model(self, entity_type: str):
        model = ENTITY_MODELS.get(entity_type)
        if model is None:
            raise ValueError(f"Unknown entity type: {entity_type}")
        return model

    def _query(self, model, filters: Dict[str, Any]):
        columns = model.__table__.columns
        for key in filters:
            if key not in columns:
                raise ValueError(f"{model.__tablename__} has no column '{key}'")
        return self.db.query(model).filter_by(**filters)

    def find_one(self, entity_type: str, filters: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        model = self._model(entity_type)
        row = self._query(model, filters).first()
        return _row_to_dict(row) if row else None

    def find_one_and_update(
        self,
        entity_type: str,
        filters: Dict[str, Any],
        values: Dict[str, Any],
        upsert: bool = False
    ) -> Optional[Dict[str, Any]]:
        model = self._model(entity_type)
        try:
            row = self._query(model, filters).first()
            if row is None:
                if not upsert:
                    return None
                return self.create(entity_type, {**filters, **values})

            for key, value in values.items():
                if key == "id":
                    continue
                setattr(row, key, value)

            self.db.commit()
            self.db.refresh(row)
            return _row_to_dict(row)

        except SQLAlchemyError as e:
            log.error(f"Error updating {entity_type} matching {filters}: {str(e)}")
            self.db.rollback()
            raise

    def create(self, entity_type: str, values: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(entity_type)
        try:
            row = model(**{k: v for k, v in values.items() if k != "id"})
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
            return _row_to_dict(row)

        except SQLAlchemyError as e:
            log.error(f"Error creating {entity_type}: {str(e)}")
            self.db.rollback()
            raise

    def close(self):
        self.db.close()
