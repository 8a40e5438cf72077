"""Audit logging for thesis workflow events"""
