"""Business modules for Yue.

Each module is self-contained with its own schemas, services, and domain
logic, built on top of the shared infrastructure packages.
"""
