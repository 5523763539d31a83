"""Notifications domain: persisted alerts, realtime fan-out and FCM push."""
