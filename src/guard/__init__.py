"""Abuse guards.

Modules
───────
  keys         — store key layout shared by both guards
  brute_force  — failed-login tracking, escalating lockouts, admin unblock
  api_abuse    — per-IP / per-route request-rate limits
  middleware   — framework-agnostic request filters
"""
