"""
Custom manager and queryset for the Document model.

QuerySets define chainable query methods.
Managers use QuerySets to enable method chaining.
No business logic should be here - only query operations.
"""

from django.db import models

from .types import canonical_id


class DocumentQuerySet(models.QuerySet):
    """Custom queryset for Document model with chainable methods."""

    def in_collection(self, collection):
        """Get documents of one collection."""
        return self.filter(collection=collection)

    def for_academy(self, academy_id):
        """
        Get documents owned by an academy.

        Args:
            academy_id: tenant identifier
        """
        return self.filter(academy_id=str(academy_id))

    def with_doc_id(self, doc_id):
        """Get the document whose `id` field equals doc_id."""
        return self.filter(doc_id=canonical_id(doc_id))

    def with_doc_ids(self, doc_ids):
        return self.filter(doc_id__in=[canonical_id(doc_id) for doc_id in doc_ids])

    def academies(self):
        """Distinct academy ids present in the queryset."""
        return self.order_by('academy_id').values_list('academy_id', flat=True).distinct()


class DocumentManager(models.Manager):
    """Custom manager for Document model."""

    def get_queryset(self):
        """Return custom queryset for method chaining."""
        return DocumentQuerySet(self.model, using=self._db)

    def in_collection(self, collection):
        """Get documents of one collection."""
        return self.get_queryset().in_collection(collection)

    def for_academy(self, academy_id):
        """Get documents owned by an academy."""
        return self.get_queryset().for_academy(academy_id)

    def scoped(self, collection, academy_id):
        """Get documents of one collection owned by an academy."""
        return self.get_queryset().in_collection(collection).for_academy(academy_id)
