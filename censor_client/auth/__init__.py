"""
Authentication package for the AIOCENSOR console client.

This package contains secure session storage, the session manager with
single-flight token refresh, and the request/response interceptors that
attach and renew credentials.
"""
