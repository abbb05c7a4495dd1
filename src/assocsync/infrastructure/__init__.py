"""Infrastructure layer — concrete transports for fetch adapters.

This layer depends on the realtime contract and third-party libs (httpx).
It must never import from services, commands, or output.
"""
