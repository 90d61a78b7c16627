"""Workshop CRM API - bookings, attendance and welcome-call tracking for the admin dashboard"""
