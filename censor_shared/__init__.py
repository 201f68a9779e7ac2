"""
Shared models, interfaces, exceptions and logging for the AIOCENSOR console client.
"""
