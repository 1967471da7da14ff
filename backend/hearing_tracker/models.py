from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, Index
from .db import Base


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username (the owner id every record is keyed by)
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	email = Column(String(256), nullable=True)
	phone = Column(String(32), nullable=True)
	requests_used = Column(Integer, default=0, nullable=False)
	requests_limit = Column(Integer, default=1000, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Document(Base):
	__tablename__ = "documents"
	# One JSON document per (collection, owner); overwritten wholesale or merged on save
	collection = Column(String(64), primary_key=True)
	owner_id = Column(String(128), primary_key=True, index=True)
	body_json = Column(Text, nullable=False, default="{}")
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Infant(Base):
	__tablename__ = "infants"
	id = Column(String(32), primary_key=True)
	name = Column(String(128), nullable=False)
	owner_id = Column(String(128), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	__table_args__ = (Index("ix_infants_owner", "owner_id"),)
