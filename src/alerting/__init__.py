"""Alert fan-out.

Modules
───────
  alert_log   — append-only NDJSON log of every alert
  channels    — email / webhook / SMS senders
  dispatcher  — log, subscribers, channel pool
  stats       — cached snapshot for dashboards and the CLI
"""
