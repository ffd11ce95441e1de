from decimal import Decimal

from django.db import migrations


def create_default_tiers(apps, schema_editor):
    CommissionTier = apps.get_model("creators", "CommissionTier")

    defaults = [
        ("Bronze", "bronze", Decimal("0.00"), Decimal("15.00"), ["Creator dashboard"]),
        ("Silver", "silver", Decimal("500.00"), Decimal("18.00"), ["Early access to launches"]),
        ("Gold", "gold", Decimal("1500.00"), Decimal("20.00"), ["Early access to launches", "Free product drops"]),
        ("Platinum", "platinum", Decimal("5000.00"), Decimal("25.00"), ["Dedicated manager", "Co-created routines"]),
    ]

    for index, (name, slug, threshold, rate, benefits) in enumerate(defaults):
        CommissionTier.objects.get_or_create(
            slug=slug,
            defaults={
                "name": name,
                "min_monthly_revenue": threshold,
                "commission_rate": rate,
                "benefits": benefits,
                "sort_order": index,
            },
        )


class Migration(migrations.Migration):
    dependencies = [
        ("creators", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(create_default_tiers, migrations.RunPython.noop),
    ]
