"""Adapters: storage, DKIM verification, mail transports and notifications."""
