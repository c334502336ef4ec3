"""
Services.

Business logic layer: sessions, flows, guards and dispatch.
"""
