"""Event-to-payload mapping helpers for the Mixpanel destination.

Submodules:
    coercion: value normalization for transport (stringify, null stripping, dates)
    user_agent: user-agent parsing adapter
    routing: real-time vs historical import routing
    traits: people-profile trait formatting and super properties
    properties: event property formatting
"""
