"""Attendance domain - idempotent attendance upserts"""
