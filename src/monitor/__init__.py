"""Security event monitoring.

Modules
───────
  watcher         — watchdog Observer wrapper and path-callback handler
  log_patterns    — sliding-window pattern rules over tailed log files
  file_integrity  — SHA-256 baselines for critical files
  engine          — SecurityEngine wiring everything together
  cli             — argparse entry-point
"""
