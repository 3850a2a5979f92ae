"""
Admin configuration for the training app.
"""

from django.contrib import admin
from .models import Document


@admin.register(Document)
class DocumentAdmin(admin.ModelAdmin):
    """Admin interface for stored documents."""

    list_display = ['doc_id', 'collection', 'academy_id', 'updated_at']
    list_filter = ['collection', 'academy_id', 'created_at']
    search_fields = ['doc_id', 'academy_id']
    date_hierarchy = 'updated_at'

    fieldsets = (
        ('Location', {
            'fields': ('collection', 'academy_id', 'doc_id')
        }),
        ('Content', {
            'fields': ('data',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    readonly_fields = ['created_at', 'updated_at']
