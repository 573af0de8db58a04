"""Domain layer: object and relation types, hierarchy rules, scoring math.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, commands, or config.
"""
