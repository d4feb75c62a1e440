"""Storage-level no-overlap guarantee for reservation items.

PostgreSQL only: a GiST exclusion constraint keeps two items of the same
bike from holding intersecting ``[starts_at, ends_at)`` ranges. Released
items are collapsed to empty ranges, which never intersect anything. Other
backends skip this migration and rely on the in-transaction guard in
``apps.reservations.storage``.
"""

from django.db import migrations

CREATE_EXCLUSION = """
ALTER TABLE reservations_reservationitem
ADD CONSTRAINT reservation_item_no_overlap
EXCLUDE USING gist (
    bike_id WITH =,
    tstzrange(starts_at, ends_at, '[)') WITH &&
);
"""

DROP_EXCLUSION = """
ALTER TABLE reservations_reservationitem
DROP CONSTRAINT IF EXISTS reservation_item_no_overlap;
"""


def _run_on_postgresql(sql):
    def run(apps, schema_editor):
        if schema_editor.connection.vendor != "postgresql":
            return
        schema_editor.execute(sql)

    return run


class Migration(migrations.Migration):

    dependencies = [
        ("reservations", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(
            _run_on_postgresql("CREATE EXTENSION IF NOT EXISTS btree_gist;"),
            migrations.RunPython.noop,
        ),
        migrations.RunPython(
            _run_on_postgresql(CREATE_EXCLUSION),
            _run_on_postgresql(DROP_EXCLUSION),
        ),
    ]
