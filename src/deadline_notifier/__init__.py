"""Deadline tracking service with server-sent deadline notifications."""
