"""Catalog domain - service items and extras (read-only here)"""
