"""Column types shared by the models.

UUIDType maps to native UUID on PostgreSQL and CHAR(32) on SQLite.
"""
from sqlalchemy import Uuid

UUIDType = Uuid
