"""Tracker domain - welcome-call status cache and endpoints"""
