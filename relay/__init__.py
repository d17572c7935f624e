"""Telegram chat relay with a resilient response processing scheduler."""
