"""Thesis workflow: engine, document binder, HTTP API"""
