import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("aquaculture", "0001_initial"),
        ("feed_inventory", "0001_initial"),
    ]

    operations = [
        migrations.AddField(
            model_name="dailyrecord",
            name="feed_type",
            field=models.ForeignKey(
                blank=True,
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="daily_records",
                to="feed_inventory.feedtype",
            ),
        ),
    ]
