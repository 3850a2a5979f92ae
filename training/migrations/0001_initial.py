from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('collection', models.CharField(max_length=100)),
                ('academy_id', models.CharField(max_length=100)),
                ('doc_id', models.CharField(max_length=64)),
                ('data', models.JSONField(default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['collection', 'academy_id', 'id'],
                'indexes': [models.Index(fields=['collection', 'academy_id'], name='document_scope_idx')],
                'constraints': [models.UniqueConstraint(fields=('collection', 'academy_id', 'doc_id'), name='unique_document_per_academy')],
            },
        ),
    ]
