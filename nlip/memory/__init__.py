"""Conversation state storage."""
