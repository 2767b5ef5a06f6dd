"""
alerts — Emergency alert pipeline.

Sub-modules:
    channels/         — Delivery gateways (Twilio, simulation)
    models            — Data structures shared across the pipeline
    contact_store     — TTL-backed emergency contact slot
    trigger_detector  — Help button + voice keyword triggers
    delivery          — Text-then-call "send alert" capability
    http_relay        — Same capability reached over POST /send-alert
    dispatcher        — Contact → location → delivery orchestration
    alert_service     — End-to-end pipeline wiring
"""
