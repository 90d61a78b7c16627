"""Auth domain - login and token refresh"""
