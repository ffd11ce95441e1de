from django.db import transaction
from django.dispatch import Signal

# Sent after the surrounding transaction commits, with ``entry``.
ledger_entry_recorded = Signal()

# Sent after commit, with ``item``, ``previous_status`` and ``status``.
payout_item_status_changed = Signal()

# Sent after commit, with ``creator_ids``, for writes that change what a
# creator sees without touching the ledger (releases, claims, bank status).
creator_state_changed = Signal()


def announce_creator_change(creator_ids) -> None:
    creator_ids = sorted({str(creator_id) for creator_id in creator_ids})
    if not creator_ids:
        return
    transaction.on_commit(lambda: creator_state_changed.send(sender=None, creator_ids=creator_ids))
