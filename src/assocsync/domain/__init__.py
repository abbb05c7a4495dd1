"""Domain layer — cache models, actions, and selectors.

This layer depends only on stdlib and pydantic.
It must never import from realtime, services, infrastructure, commands, or config.
"""
