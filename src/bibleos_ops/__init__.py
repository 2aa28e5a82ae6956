"""bibleos-ops: tenant backup/restore, retention scan and reminder jobs for BibleOS.

Usage:
    from bibleos_ops.backup import export_backup, restore_backup
    from bibleos_ops.factory import get_adapter, get_storage
"""

__version__ = "0.1.0"
