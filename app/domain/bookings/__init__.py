"""Bookings domain - pricing, validation, lifecycle and the booking aggregate"""
