"""
Repository pattern implementation.
Abstracts data access and provides a clean interface for domain services.
"""
from typing import Generic, TypeVar, Optional, List, Iterable
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db.models import QuerySet, Model
from django.db import transaction
import logging

from core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=Model)


class BaseRepository(Generic[T]):
    """
    Base repository providing common CRUD operations.
    Primary keys may be integers or UUID strings.
    """

    def __init__(self, model: type[T]):
        self.model = model

    def get_by_id(self, id, **filters) -> Optional[T]:
        """Get a single instance by primary key, or None"""
        try:
            return self.model.objects.filter(pk=id, **filters).first()
        except (ValueError, DjangoValidationError) as e:
            logger.warning(f"Invalid {self.model.__name__} id {id!r}: {str(e)}")
            return None

    def get_by_id_or_raise(self, id, **filters) -> T:
        """Get a single instance by primary key or raise NotFoundError"""
        instance = self.get_by_id(id, **filters)
        if instance is None:
            raise NotFoundError(resource_type=self.model.__name__, resource_id=id)
        return instance

    def get_all(self, **filters) -> QuerySet[T]:
        """Get all instances matching filters"""
        return self.model.objects.filter(**filters)

    def get_in_bulk(self, ids: Iterable) -> dict:
        """Fetch many instances keyed by primary key in one query"""
        return self.model.objects.in_bulk(list(ids))

    def create(self, **kwargs) -> T:
        """Create a new instance"""
        return self.model.objects.create(**kwargs)

    def update(self, instance: T, **kwargs) -> T:
        """Update an existing instance"""
        for key, value in kwargs.items():
            setattr(instance, key, value)
        instance.save()
        return instance

    def delete(self, instance: T) -> bool:
        """Delete an instance"""
        instance.delete()
        return True

    def exists(self, **filters) -> bool:
        """Check if instance exists"""
        return self.model.objects.filter(**filters).exists()

    def count(self, **filters) -> int:
        """Count instances matching filters"""
        return self.model.objects.filter(**filters).count()

    @transaction.atomic
    def bulk_create(self, instances: List[T], batch_size: Optional[int] = None) -> List[T]:
        """Bulk create instances"""
        return self.model.objects.bulk_create(instances, batch_size=batch_size)

    def get_queryset(self) -> QuerySet[T]:
        """Get base queryset for custom queries"""
        return self.model.objects.all()
