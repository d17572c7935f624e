"""Telegram inbound handling and delivery channel."""
