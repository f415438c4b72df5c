"""
Entity models used by the test suite.

Item has a single integer primary key; Membership has a composite key;
Document carries a JSON column.
"""

from sqlalchemy import JSON, Column, Float, Integer, String

from generic_repository.models import Base, ModelMixin


class Item(Base, ModelMixin):
    """Catalogue item with a score and an optional category."""

    __tablename__ = "items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    category = Column(String(50), nullable=True)
    score = Column(Integer, nullable=False, default=0)
    price = Column(Float, nullable=True)


class Membership(Base, ModelMixin):
    """Group membership keyed by (group_name, member_name)."""

    __tablename__ = "memberships"

    group_name = Column(String(50), primary_key=True)
    member_name = Column(String(50), primary_key=True)
    role = Column(String(20), nullable=False, default="member")


class Document(Base, ModelMixin):
    """Document with free-form JSON tags."""

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True)
    title = Column(String(100), nullable=False)
    tags = Column(JSON, nullable=True)
