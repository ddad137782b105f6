from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask_login import UserMixin

from database import get_db
from utils.timestamps import iso_utc


class User(UserMixin):
    """
    Authenticated caller.

    Sessions are issued elsewhere; this service only loads the row behind the
    Flask-Login session id and treats ``id`` as an opaque identity.
    """
    def __init__(self, id, email=None, is_admin=False):
        self.id = str(id)
        self.email = email
        self.is_admin = bool(is_admin)

    @staticmethod
    def get(user_id):
        db = get_db()
        row = db.execute(
            "SELECT id, email, is_admin FROM users WHERE id = %s", (str(user_id),)
        ).fetchone()
        if not row:
            return None
        return User(id=row['id'], email=row['email'], is_admin=row['is_admin'])


@dataclass(frozen=True)
class Code:
    """One physical sticker."""
    code_key: str
    pack_id: Optional[str]
    minted_at: Optional[datetime]

    @classmethod
    def from_row(cls, row):
        return cls(code_key=row['code_key'], pack_id=row['pack_id'], minted_at=row['minted_at'])

    def to_dict(self):
        return {
            "codeKey": self.code_key,
            "packId": self.pack_id,
            "mintedAt": iso_utc(self.minted_at),
        }


@dataclass(frozen=True)
class CodePack:
    """Print-batch grouping of codes. Provenance only, no ownership."""
    id: str
    name: str
    description: Optional[str]
    created_by: Optional[str]
    created_at: Optional[datetime]
    code_count: int = 0
    claimed_code_count: int = 0

    @classmethod
    def from_row(cls, row):
        data = dict(row)
        return cls(
            id=data['id'],
            name=data['name'],
            description=data.get('description'),
            created_by=data.get('created_by'),
            created_at=data.get('created_at'),
            code_count=int(data.get('code_count') or 0),
            claimed_code_count=int(data.get('claimed_code_count') or 0),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "createdBy": self.created_by,
            "createdAt": iso_utc(self.created_at),
            "codeCount": self.code_count,
            "claimedCodeCount": self.claimed_code_count,
        }


@dataclass(frozen=True)
class Item:
    id: str
    user_id: str
    name: str


@dataclass(frozen=True)
class Claim:
    """User ``user_id`` says code ``code_key`` is attached to their item ``item_id``."""
    user_id: str
    code_key: str
    item_id: str
    claimed_at: Optional[datetime]

    @classmethod
    def from_row(cls, row):
        return cls(
            user_id=row['user_id'],
            code_key=row['code_key'],
            item_id=row['item_id'],
            claimed_at=row['claimed_at'],
        )

    def to_dict(self):
        return {
            "userId": self.user_id,
            "codeKey": self.code_key,
            "itemId": self.item_id,
            "claimedAt": iso_utc(self.claimed_at),
        }


@dataclass(frozen=True)
class ClaimedItem:
    """A caller's claim joined with the item it points at."""
    code_key: str
    item_id: str
    item_name: str
    claimed_at: Optional[datetime]

    @classmethod
    def from_row(cls, row):
        return cls(
            code_key=row['code_key'],
            item_id=row['item_id'],
            item_name=row['item_name'],
            claimed_at=row['claimed_at'],
        )

    def to_dict(self, include_code=False):
        data = {
            "itemId": self.item_id,
            "itemName": self.item_name,
            "claimedAt": iso_utc(self.claimed_at),
        }
        if include_code:
            data["codeKey"] = self.code_key
        return data


@dataclass(frozen=True)
class ScanEvent:
    """Append-only scan record. Never updated after insert."""
    code_key_raw: str
    code_key_normalized: str
    user_id: Optional[str]
    platform: str
    source: str
    scanned_at: datetime
