"""
Fixture pages, their FastAPI hosts, and the scenario registry.
"""
