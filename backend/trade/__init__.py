"""
Trade operations core.

Quantity bookkeeping and progress rollups across the import chain:

    Need ← Request ← Contract ← Vessel ← (allocation) ← Letter of Credit

Modules:
  - ledger:      LC allocated/remaining quantity, vessel discharge progress
  - fulfillment: Need progress from discharged vessels
  - transitions: Cross-entity status cascades as domain-event handlers
  - workflow:    Writes that raise those events inside one transaction
  - reporting:   Point-in-time need vs delivery report

Usage:
    from trade.ledger import get_allocated_quantity
    from trade.fulfillment import update_needs_progress_from_vessels

    allocated = await get_allocated_quantity(db, lc_id)
    summary = await update_needs_progress_from_vessels(db)
"""
