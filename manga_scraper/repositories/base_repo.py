from __future__ import annotations

from typing import Any, Generic, Iterable, Optional, Type, TypeVar

from sqlalchemy import func, select
from sqlalchemy.orm import Session

T = TypeVar("T")


class BaseRepository(Generic[T]):
    def __init__(self, session: Session, model: Type[T]) -> None:
        self.session = session
        self.model = model

    def create(self, obj: T, *, commit: bool = True) -> T:
        self.session.add(obj)
        if commit:
            self.session.commit()
            self.session.refresh(obj)
        return obj

    def get_by_id(self, id_: Any) -> Optional[T]:
        return self.session.get(self.model, id_)

    def list(self, *, limit: int = 100, offset: int = 0) -> list[T]:
        stmt = select(self.model).limit(limit).offset(offset)
        return list(self.session.execute(stmt).scalars().all())

    def find_one(self, **filters: Any) -> Optional[T]:
        stmt = select(self.model).filter_by(**filters)
        return self.session.execute(stmt).scalars().first()

    def count(self, **filters: Any) -> int:
        stmt = select(func.count()).select_from(self.model).filter_by(**filters)
        return int(self.session.execute(stmt).scalar_one())

    def update(self, obj: T, *, commit: bool = True) -> T:
        obj = self.session.merge(obj)
        if commit:
            self.session.commit()
            self.session.refresh(obj)
        return obj

    def delete(self, obj: T, *, commit: bool = True) -> None:
        self.session.delete(obj)
        if commit:
            self.session.commit()

    def upsert(
        self, values: dict[str, Any], unique_fields: Iterable[str], *, commit: bool = True
    ) -> T:
        """Insert a row from *values* or update the row sharing its *unique_fields*.

        Mirrors ``INSERT ... ON CONFLICT (unique_fields) DO UPDATE``: columns
        not present in *values* keep their stored value.
        """
        existing = self.find_one(**{f: values[f] for f in unique_fields})

        if existing is not None:
            for key, value in values.items():
                setattr(existing, key, value)
            obj = existing
        else:
            obj = self.model(**values)
            self.session.add(obj)

        if commit:
            self.session.commit()
            self.session.refresh(obj)
        else:
            self.session.flush()
        return obj
