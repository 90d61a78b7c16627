"""Bookings domain - reconciliation of bookings, attendance and tracker state"""
