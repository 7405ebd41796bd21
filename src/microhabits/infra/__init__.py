"""Persistence adapters backed by SQLModel."""
