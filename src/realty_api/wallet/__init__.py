"""Wallet transport, provider bridge and connection state machine."""
