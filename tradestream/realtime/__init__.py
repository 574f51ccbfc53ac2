"""Realtime streaming client for dashboard market, trade and alert views.

Keeps one persistent WebSocket connection to the dashboard API server,
reconnects with capped exponential backoff, replays symbol subscriptions
on every open, and fans decoded frames out to registered listeners.

Architecture:
    Transport -> ConnectionManager -> MessageRouter -> EventBus -> handlers
    caller -> SubscriptionRegistry -> ConnectionManager.send()
"""
