"""
Navigation package for the AIOCENSOR console client.

This package contains the route table, the authentication-aware navigation
guard and the router that applies its decisions.
"""
