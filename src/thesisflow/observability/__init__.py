"""Observability: request correlation, structured logging, metrics, health"""
