"""Payments domain - payment records and gateway webhook reconciliation"""
