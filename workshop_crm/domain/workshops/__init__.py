"""Workshops domain - workshop details and theme lookup"""
