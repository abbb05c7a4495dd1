"""Service layer — orchestration returning ServiceResult.

Services may import from domain, realtime, infrastructure, and plugins.
They must never import from commands or output.
"""
