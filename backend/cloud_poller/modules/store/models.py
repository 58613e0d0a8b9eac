import time

from sqlmodel import Field, SQLModel


class KeyValueEntry(SQLModel, table=True):
    __tablename__ = "kv_entries"

    key: str = Field(primary_key=True)
    value: str  # JSON-encoded
    updated_at: float = Field(default_factory=time.time, index=True)
