"""Coh Music Site - artist website with an admin-managed content store."""
