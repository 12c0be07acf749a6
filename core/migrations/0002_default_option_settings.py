from django.conf import settings
from django.db import migrations


def create_option_settings(apps, schema_editor):
    from core.models import (
        DEFAULT_COURSES, DEFAULT_LEAD_STAGES, DEFAULT_LOCATIONS, DEFAULT_STATUSES, OptionSettings as Current,
    )

    OptionSettings = apps.get_model('core', 'OptionSettings')
    options, created = OptionSettings.objects.get_or_create(
        key=settings.OPTION_SETTINGS_KEY,
        defaults={
            'courses': DEFAULT_COURSES,
            'locations': DEFAULT_LOCATIONS,
            'statuses': DEFAULT_STATUSES,
            'lead_stages': DEFAULT_LEAD_STAGES,
        },
    )
    if not created:
        options.lead_stages = Current.normalize_lead_stages(options.lead_stages)
        options.save(update_fields=['lead_stages'])


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_option_settings, migrations.RunPython.noop),
    ]
