"""Data models for Shipyard configuration, outcomes and persisted state."""
