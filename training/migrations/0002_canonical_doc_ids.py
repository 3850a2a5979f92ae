from django.db import migrations

from training.types import canonical_id


def canonicalize_doc_ids(apps, schema_editor):
    Document = apps.get_model('training', 'Document')
    for document in Document.objects.iterator():
        raw_id = (document.data or {}).get('id')
        if raw_id is None:
            continue
        doc_id = canonical_id(raw_id)
        if doc_id != document.doc_id:
            document.doc_id = doc_id
            document.save(update_fields=['doc_id'])


class Migration(migrations.Migration):

    dependencies = [
        ('training', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(canonicalize_doc_ids, migrations.RunPython.noop),
    ]
