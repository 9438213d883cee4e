"""
Role checks for retroactive receipt edits.
Only store heads and regional heads may change a persisted transaction.
"""
from strukbot.schemas.access import Access


def can_edit_transactions(access: Access) -> bool:
    return access.has_access and (access.is_regional_head or access.is_store_head)


def can_view_regional_report(access: Access) -> bool:
    return access.has_access and access.is_regional_head and access.region_id is not None
