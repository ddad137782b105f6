"""
Read-only view of the items table.

Items belong to the inventory side of the product; the QR core only needs to
know whether an item exists and who owns it.
"""
from models import Item
from services.store_errors import store_errors


class ItemDirectory:
    def __init__(self, get_db):
        self._get_db = get_db

    def get_owned(self, user_id, item_id):
        """Return the Item if ``user_id`` owns ``item_id``, else None."""
        if not user_id or not item_id:
            return None
        db = self._get_db()
        with store_errors(db, item_id=item_id):
            row = db.execute(
                "SELECT id, user_id, name FROM items WHERE id = %s AND user_id = %s",
                (str(item_id), str(user_id))
            ).fetchone()
        if not row:
            return None
        return Item(id=str(row['id']), user_id=str(row['user_id']), name=row['name'])
