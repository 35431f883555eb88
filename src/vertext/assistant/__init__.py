"""Conversational assistant: generative backend, fallback rules, orchestrator."""
