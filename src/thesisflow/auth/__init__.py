"""Token verification and actor roles (tokens are issued by the external auth service)"""
