"""
Infrastructure layer: HTTP adapter, durable storage, repositories, resilience.
"""
