"""
Models for the training session service.

Sessions, players and batches are schemaless JSON documents grouped into
named collections and partitioned by academy. `DocumentStore` in store.py is
the only code that should read or write them.
"""

from django.db import models

from .managers import DocumentManager


class Document(models.Model):
    """
    One JSON document in a collection, owned by a single academy.

    `doc_id` mirrors the document's own `id` field as a string so lookups
    by id can use the unique index.
    """

    collection = models.CharField(max_length=100)
    academy_id = models.CharField(max_length=100)
    doc_id = models.CharField(max_length=64)
    data = models.JSONField(default=dict)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DocumentManager()

    class Meta:
        ordering = ['collection', 'academy_id', 'id']
        constraints = [
            models.UniqueConstraint(
                fields=['collection', 'academy_id', 'doc_id'],
                name='unique_document_per_academy',
            ),
        ]
        indexes = [
            models.Index(fields=['collection', 'academy_id'], name='document_scope_idx'),
        ]

    def __str__(self):
        return f"{self.collection}/{self.academy_id}/{self.doc_id}"
