"""Accountability engine services: calendar, scanner, approvals, deadline status, grid."""
